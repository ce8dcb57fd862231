"""
services/notification_service.py
--------------------------------
Arms and cancels bill reminders on the bot's JobQueue.

Each bill has at most one pending reminder job, named
``reminder:{user_id}:{bill_id}``; scheduling always cancels the old job
first. Jobs live in the JobQueue scheduler, independent of any chat.
"""

from decimal import Decimal
from typing import Optional

from telegram.ext import ContextTypes, JobQueue

from models.bill import Bill, ReminderPreference
from services.reminder_engine import ReminderEngine, ReminderSchedule
from utils.logger import get_logger

logger = get_logger(__name__)

_JOB_PREFIX = "reminder"


def reminder_text(preference: ReminderPreference, name: str, amount: Decimal, currency: str) -> tuple[str, str]:
    """Title and body for a reminder."""
    if preference is ReminderPreference.ONE_DAY_BEFORE:
        return "Bill Due Tomorrow", f"{name} - {amount:.2f} {currency} is due tomorrow"
    return "Bill Due Today", f"{name} - {amount:.2f} {currency} is due today!"


async def send_bill_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    """JobQueue callback: deliver one reminder to the bill owner's chat."""
    job = context.job
    data = job.data
    title, body = reminder_text(
        ReminderPreference(data["preference"]), data["name"], Decimal(data["amount"]), data["currency"]
    )
    await context.bot.send_message(chat_id=job.chat_id, text=f"⏰ *{title}*\n\n{body}", parse_mode="Markdown")
    logger.info(f"Sent reminder for bill {data['bill_id']} to chat {job.chat_id}")


class NotificationService:
    """
    Reminder scheduler backed by python-telegram-bot's JobQueue.

    Args:
        job_queue: The application's JobQueue.
        engine: Computes fire times.
        settings_repo: Optional; when given, users who turned notifications
            off get no reminders.
    """

    def __init__(self, job_queue: JobQueue, engine: ReminderEngine, settings_repo=None):
        self.job_queue = job_queue
        self.engine = engine
        self.settings_repo = settings_repo

    @staticmethod
    def job_name(user_id: str, bill_id: str) -> str:
        return f"{_JOB_PREFIX}:{user_id}:{bill_id}"

    def _notifications_enabled(self, user_id: str) -> bool:
        if self.settings_repo is None:
            return True
        return self.settings_repo.get(user_id).notifications_enabled

    def schedule_bill_reminder(self, user_id: str, bill: Bill) -> Optional[ReminderSchedule]:
        """
        Replace the bill's reminder with a freshly computed one.

        Returns:
            The armed schedule, or None when the bill gets no reminder
            (paid, deleted, preference none, or notifications off).
        """
        self.cancel_bill_reminder(user_id, bill.id)
        if bill.paid or bill.is_deleted:
            return None
        if not self._notifications_enabled(user_id):
            return None

        schedule = self.engine.schedule_for(bill)
        if schedule is None:
            return None

        self.job_queue.run_once(
            send_bill_reminder,
            when=schedule.fire_at.astimezone(),
            name=self.job_name(user_id, bill.id),
            chat_id=user_id,
            data={
                "bill_id": bill.id,
                "name": bill.name,
                "amount": str(bill.amount),
                "currency": bill.currency_code,
                "preference": bill.reminder_preference.value,
            },
        )
        logger.info(f"Reminder for bill {bill.id} armed at {schedule.fire_at} ({schedule.description})")
        return schedule

    def cancel_bill_reminder(self, user_id: str, bill_id: str) -> int:
        jobs = self.job_queue.get_jobs_by_name(self.job_name(user_id, bill_id))
        for job in jobs:
            job.schedule_removal()
        return len(jobs)

    def cancel_all(self, user_id: str) -> int:
        """Cancel every reminder of one user."""
        prefix = f"{_JOB_PREFIX}:{user_id}:"
        jobs = [job for job in self.job_queue.jobs() if job.name and job.name.startswith(prefix)]
        for job in jobs:
            job.schedule_removal()
        logger.info(f"Cancelled {len(jobs)} reminder(s) for user {user_id}")
        return len(jobs)

    def reschedule_all(self, user_id: str, bills: list[Bill]) -> int:
        """Cancel everything for the user and re-arm reminders for unpaid bills."""
        self.cancel_all(user_id)
        armed = 0
        for bill in bills:
            if self.schedule_bill_reminder(user_id, bill) is not None:
                armed += 1
        return armed
