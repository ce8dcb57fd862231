"""
services/reminder_engine.py
---------------------------
Pure computation of when a bill reminder should fire.

Formula (real mode):
    notify_at = (due day - offset in days) at reminder_hour:reminder_minute:00

Accelerated mode swaps the day offsets for seconds and counts from the
bill's last-touched instant instead of the due date, so a developer can
watch a reminder arrive within a minute of saving a bill.

The mode is injected at construction; nothing here reads configuration.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from models.bill import Bill, ReminderPreference
from utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_DELAY = timedelta(seconds=5)

_REAL_OFFSETS = {
    ReminderPreference.ONE_DAY_BEFORE: timedelta(days=1),
    ReminderPreference.SAME_DAY: timedelta(0),
}

_ACCELERATED_OFFSETS = {
    ReminderPreference.ONE_DAY_BEFORE: timedelta(minutes=1),
    ReminderPreference.SAME_DAY: timedelta(seconds=30),
}


class ReminderMode(str, Enum):
    REAL = "real"
    ACCELERATED = "accelerated"


@dataclass(frozen=True)
class ReminderSchedule:
    fire_at: datetime
    description: str


def _local_naive(value: datetime) -> datetime:
    """Wall-clock view of an instant; naive values are already wall-clock."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _plural(count: int, unit: str) -> str:
    return f"In {count} {unit}{'s' if count != 1 else ''}"


class ReminderEngine:
    """
    Maps (due date, preference, time of day, reference instant) to a fire time.

    Args:
        mode: Real or accelerated offsets.
        clock: Returns the current wall-clock time (naive). Injectable for tests.
    """

    def __init__(self, mode: ReminderMode = ReminderMode.REAL,
                 clock: Callable[[], datetime] = datetime.now):
        self.mode = ReminderMode(mode)
        self._clock = clock

    def now(self) -> datetime:
        return _local_naive(self._clock())

    def offset(self, preference: ReminderPreference) -> Optional[timedelta]:
        """Offset before the due date, or None when reminders are off."""
        if preference is ReminderPreference.NONE:
            return None
        table = _ACCELERATED_OFFSETS if self.mode is ReminderMode.ACCELERATED else _REAL_OFFSETS
        return table[preference]

    def notification_time(
        self,
        due_date: datetime,
        preference: ReminderPreference,
        reminder_hour: int = 9,
        reminder_minute: int = 0,
        reference_time: Optional[datetime] = None,
        use_fallback: bool = True,
    ) -> Optional[datetime]:
        """
        Compute the reminder instant as naive wall-clock time.

        Args:
            due_date: Bill due date; only its calendar day matters in real mode.
            preference: Reminder preference; NONE yields None.
            reminder_hour: Hour to pin the real-mode reminder to.
            reminder_minute: Minute to pin the real-mode reminder to.
            reference_time: Last-touched instant; the base in accelerated mode.
            use_fallback: Replace a past instant with now + 5 seconds. Pass False
                to get the raw value (e.g. to show "already notified").

        Returns:
            The fire time, or None when no reminder should be scheduled.
        """
        offset = self.offset(preference)
        if offset is None:
            return None

        now = self.now()
        if self.mode is ReminderMode.ACCELERATED:
            base = _local_naive(reference_time) if reference_time is not None else now
            notify_at = base + offset
        else:
            target_day = due_date.date() - timedelta(days=offset.days)
            notify_at = datetime(
                target_day.year, target_day.month, target_day.day,
                reminder_hour, reminder_minute, 0,
            )

        if use_fallback and notify_at < now:
            logger.debug(f"Reminder time {notify_at} already passed; firing in {FALLBACK_DELAY}")
            notify_at = now + FALLBACK_DELAY

        return notify_at

    def describe(self, fire_at: datetime) -> str:
        """Largest whole non-zero unit until ``fire_at``, or 'Immediately' if not in the future."""
        remaining = int((fire_at - self.now()).total_seconds())
        if remaining <= 0:
            return "Immediately"
        days, rest = divmod(remaining, 86400)
        if days:
            return _plural(days, "day")
        hours, rest = divmod(rest, 3600)
        if hours:
            return _plural(hours, "hour")
        minutes, seconds = divmod(rest, 60)
        if minutes:
            return _plural(minutes, "minute")
        return _plural(seconds, "second")

    def schedule_for(self, bill: Bill, use_fallback: bool = True) -> Optional[ReminderSchedule]:
        """Fire time and description for a bill, or None when it gets no reminder."""
        fire_at = self.notification_time(
            due_date=bill.due_date,
            preference=bill.reminder_preference,
            reminder_hour=bill.reminder_hour,
            reminder_minute=bill.reminder_minute,
            reference_time=bill.updated_at,
            use_fallback=use_fallback,
        )
        if fire_at is None:
            return None
        return ReminderSchedule(fire_at=fire_at, description=self.describe(fire_at))
