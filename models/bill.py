"""
models/bill.py
--------------
Domain model for a tracked bill and its sync-state fields.

Sync bookkeeping follows a dirty-flag scheme:
    - clean:   in sync with the remote store, nothing to upload.
    - created: never uploaded; stays 'created' through local edits so the
               first upload is a full create.
    - updated: previously uploaded, changed locally since.
    - deleted: tombstone; removed from the local store only after the
               remote delete is confirmed.

Every transition except ``mark_as_clean`` bumps ``version``.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

# Matches the local store's VARCHAR(200) column.
MAX_NAME_LENGTH = 200


class RepeatMode(str, Enum):
    ONE_TIME = "one-time"
    MONTHLY = "monthly"


class ReminderPreference(str, Enum):
    NONE = "none"
    ONE_DAY_BEFORE = "one_day_before"
    SAME_DAY = "same_day"


class SyncStatus(str, Enum):
    CLEAN = "clean"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

    @property
    def is_dirty(self) -> bool:
        return self is not SyncStatus.CLEAN


class BillStatus(str, Enum):
    """Derived, never stored."""
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    PAID = "paid"


def parse_reminder_preference(value: Optional[str]) -> ReminderPreference:
    """
    Parse a stored preference code.

    The retired 'both' option maps to one-day-before; anything unknown
    (including missing) maps to none.
    """
    if value == "both":
        return ReminderPreference.ONE_DAY_BEFORE
    try:
        return ReminderPreference(value)
    except ValueError:
        return ReminderPreference.NONE


def parse_sync_status(value: Optional[str]) -> SyncStatus:
    """Unknown codes are treated as 'created' so they get uploaded."""
    try:
        return SyncStatus(value)
    except ValueError:
        return SyncStatus.CREATED


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_bill_id() -> str:
    return str(uuid.uuid4())


def to_decimal(value: Any) -> Decimal:
    """Coerce user or storage input to a 2-place Decimal amount."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Amount must be a non-negative number, got {value!r}")
    return amount.quantize(Decimal("0.01"))


# Fields a user is allowed to change through ``apply_changes``.
EDITABLE_FIELDS = frozenset({
    "name", "amount", "currency_code", "due_date", "repeat", "paid",
    "reminder_preference", "reminder_hour", "reminder_minute",
})


@dataclass
class Bill:
    """
    A single bill, one-time or monthly.

    Attributes:
        id: Opaque UUID string, stable for the bill's lifetime.
        name: Friendly name (e.g. 'Rent', 'Netflix').
        amount: Magnitude in ``currency_code``; always a Decimal.
        due_date: Wall-clock due date and time (naive).
        repeat: One-time or monthly.
        paid: Whether the bill has been paid.
        currency_code: ISO 4217 code.
        reminder_preference: When to remind relative to the due date.
        reminder_hour: Hour of day (0-23) for real-mode reminders.
        reminder_minute: Minute (0-59) for real-mode reminders.
        sync_status: Dirty-flag state (see module docstring).
        version: Starts at 1, bumped by every non-clean transition.
        last_modified: UTC instant of the last data change; drives incremental pulls.
        updated_at: UTC "last touched" instant shown to the user.
    """
    name: str
    amount: Decimal
    due_date: datetime
    repeat: RepeatMode = RepeatMode.ONE_TIME
    paid: bool = False
    currency_code: str = "INR"
    reminder_preference: ReminderPreference = ReminderPreference.NONE
    reminder_hour: int = 9
    reminder_minute: int = 0
    sync_status: SyncStatus = SyncStatus.CREATED
    version: int = 1
    id: str = field(default_factory=new_bill_id)
    last_modified: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        self.repeat = RepeatMode(self.repeat)
        self.reminder_preference = ReminderPreference(self.reminder_preference)
        self.sync_status = SyncStatus(self.sync_status)
        self.currency_code = self.currency_code.upper()
        if isinstance(self.due_date, date) and not isinstance(self.due_date, datetime):
            self.due_date = datetime(self.due_date.year, self.due_date.month, self.due_date.day)
        self._validate()

    def _validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Bill name must not be empty")
        if len(self.name) > MAX_NAME_LENGTH:
            raise ValueError(f"Bill name longer than {MAX_NAME_LENGTH} characters")
        if len(self.currency_code) != 3 or not self.currency_code.isalpha():
            raise ValueError(f"Invalid ISO 4217 currency code: {self.currency_code!r}")
        if not 0 <= self.reminder_hour <= 23:
            raise ValueError(f"reminder_hour out of range: {self.reminder_hour}")
        if not 0 <= self.reminder_minute <= 59:
            raise ValueError(f"reminder_minute out of range: {self.reminder_minute}")
        if self.version < 1:
            raise ValueError(f"version must start at 1, got {self.version}")

    # ── Derived state ─────────────────────────────────────

    def status(self, today: Optional[date] = None) -> BillStatus:
        """Paid, else overdue if the due day is strictly before today, else upcoming."""
        if self.paid:
            return BillStatus.PAID
        today = today or date.today()
        if self.due_date.date() < today:
            return BillStatus.OVERDUE
        return BillStatus.UPCOMING

    @property
    def is_monthly(self) -> bool:
        return self.repeat is RepeatMode.MONTHLY

    @property
    def is_dirty(self) -> bool:
        return self.sync_status.is_dirty

    @property
    def is_deleted(self) -> bool:
        return self.sync_status is SyncStatus.DELETED

    # ── Dirty-flag transitions ────────────────────────────

    def _touch(self, now: Optional[datetime]) -> None:
        now = now or utc_now()
        self.version += 1
        self.last_modified = now
        self.updated_at = now

    def mark_as_created(self, now: Optional[datetime] = None) -> None:
        self.sync_status = SyncStatus.CREATED
        self._touch(now)

    def mark_as_updated(self, now: Optional[datetime] = None) -> None:
        """Record a local edit. A bill that was never uploaded stays 'created'."""
        if self.sync_status is not SyncStatus.CREATED:
            self.sync_status = SyncStatus.UPDATED
        self._touch(now)

    def mark_as_deleted(self, now: Optional[datetime] = None) -> None:
        self.sync_status = SyncStatus.DELETED
        self._touch(now)

    def mark_as_clean(self) -> None:
        """Upload confirmed. Version and timestamps are left alone."""
        self.sync_status = SyncStatus.CLEAN

    def apply_changes(self, now: Optional[datetime] = None, **changes: Any) -> bool:
        """
        Apply user edits and mark the bill updated.

        Returns:
            False (and leaves the bill untouched) when nothing actually changed.

        Raises:
            ValueError: On an unknown field or an invalid value.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        candidate = replace(self, **changes)  # runs __post_init__ validation
        diff = {k: getattr(candidate, k) for k in changes if getattr(candidate, k) != getattr(self, k)}
        if not diff:
            return False
        for key, value in diff.items():
            setattr(self, key, value)
        self.mark_as_updated(now)
        return True

    # ── Recurring bills ───────────────────────────────────

    def next_month_bill(self, new_id: Optional[str] = None) -> "Bill":
        """
        Build next month's unpaid copy of a monthly bill.

        The due date moves forward one calendar month; days that do not exist
        in the target month clamp to its last day (Jan 31 -> Feb 28/29).
        """
        return Bill(
            id=new_id or new_bill_id(),
            name=self.name,
            amount=self.amount,
            due_date=self.due_date + relativedelta(months=1),
            repeat=self.repeat,
            paid=False,
            currency_code=self.currency_code,
            reminder_preference=self.reminder_preference,
            reminder_hour=self.reminder_hour,
            reminder_minute=self.reminder_minute,
            sync_status=SyncStatus.CREATED,
        )

    # ── Remote document shape ─────────────────────────────

    def to_remote(self) -> dict:
        """Serialize for the remote document store (sync state is not uploaded)."""
        return {
            "name": self.name,
            "amount": str(self.amount),
            "currencyCode": self.currency_code,
            "dueDate": self.due_date.isoformat(),
            "repeat": self.repeat.value,
            "paid": self.paid,
            "reminderPreference": self.reminder_preference.value,
            "reminderTimeHour": self.reminder_hour,
            "reminderTimeMinute": self.reminder_minute,
            "version": self.version,
            "updatedAt": self.updated_at,
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_remote(cls, bill_id: str, data: dict) -> "Bill":
        """Rebuild a bill from a remote document; it arrives clean."""
        updated_at = _as_utc(data.get("updatedAt")) or utc_now()
        last_modified = _as_utc(data.get("lastModified")) or updated_at
        return cls(
            id=bill_id,
            name=data.get("name") or "Untitled bill",
            amount=data.get("amount", "0"),
            currency_code=data.get("currencyCode") or "INR",
            due_date=datetime.fromisoformat(data["dueDate"]),
            repeat=data.get("repeat") or RepeatMode.ONE_TIME.value,
            paid=bool(data.get("paid", False)),
            reminder_preference=parse_reminder_preference(data.get("reminderPreference")),
            reminder_hour=int(data.get("reminderTimeHour", 9)),
            reminder_minute=int(data.get("reminderTimeMinute", 0)),
            sync_status=SyncStatus.CLEAN,
            version=int(data.get("version", 1)),
            updated_at=updated_at,
            last_modified=last_modified,
        )

    def __str__(self) -> str:
        state = "✅" if self.paid else "🧾"
        return f"{state} {self.name}: {self.amount} {self.currency_code} - Due: {self.due_date:%Y-%m-%d %H:%M}"


def _as_utc(value: Any) -> Optional[datetime]:
    """Accept native timestamps or legacy ISO strings; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
