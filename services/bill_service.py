"""
services/bill_service.py
------------------------
Business logic for one user's bills.

Every mutation is written to the local store first, then the reminder is
re-armed and the sync engine is told the bill is dirty. Local store
errors propagate to the caller: a bill that failed to save is never
reported as saved.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from models.bill import Bill, BillStatus, ReminderPreference, RepeatMode
from models.sync import SyncResult, SyncState
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SyncStatusSummary:
    state: SyncState
    pending_count: int
    last_sync_time: Optional[datetime]
    last_error: Optional[str]


class BillService:
    """
    Orchestrates the local store, reminders and sync for one user.

    Args:
        user_id: Owner of the bills.
        store: Local store bound to ``user_id``.
        sync: The user's ``SyncService``.
        notifier: Optional ``NotificationService``.
        settings_repo: Optional source of per-user defaults.
    """

    def __init__(self, user_id: str, store, sync, notifier=None, settings_repo=None):
        self.user_id = str(user_id)
        self.store = store
        self.sync = sync
        self.notifier = notifier
        self.settings_repo = settings_repo

    # ── READ ──────────────────────────────────────────────

    def list_bills(self) -> list[Bill]:
        """Live bills (tombstones hidden) sorted by due date."""
        bills = [b for b in self.store.get_all() if not b.is_deleted]
        return sorted(bills, key=lambda b: (b.due_date, b.name))

    def get_bill(self, bill_id: str) -> Bill:
        """
        Raises:
            LookupError: If the bill does not exist or is deleted.
        """
        bill = self.store.get(bill_id)
        if bill is None or bill.is_deleted:
            raise LookupError(f"Bill {bill_id} not found")
        return bill

    def find_bill(self, ref: str) -> Bill:
        """
        Resolve a user reference: a 1-based position in ``list_bills()`` or an id prefix.

        Raises:
            LookupError: If nothing (or more than one bill) matches.
        """
        ref = ref.strip().lstrip("#")
        bills = self.list_bills()
        if ref.isdigit() and 1 <= int(ref) <= len(bills):
            return bills[int(ref) - 1]
        matches = [b for b in bills if b.id.startswith(ref)] if ref else []
        if len(matches) != 1:
            raise LookupError(f"No single bill matches '{ref}'")
        return matches[0]

    def overdue_bills(self, today: Optional[date] = None) -> list[Bill]:
        return [b for b in self.list_bills() if b.status(today) is BillStatus.OVERDUE]

    def total_outstanding(self) -> dict[str, Decimal]:
        """Unpaid totals per currency code."""
        totals: dict[str, Decimal] = {}
        for bill in self.list_bills():
            if not bill.paid:
                totals[bill.currency_code] = totals.get(bill.currency_code, Decimal("0")) + bill.amount
        return totals

    def sync_status(self) -> SyncStatusSummary:
        return SyncStatusSummary(
            state=self.sync.state,
            pending_count=self.sync.pending_count,
            last_sync_time=self.sync.last_sync_time,
            last_error=self.sync.last_error,
        )

    # ── WRITE ─────────────────────────────────────────────

    def add_bill(
        self,
        name: str,
        amount,
        due_date: datetime,
        repeat: RepeatMode = RepeatMode.ONE_TIME,
        reminder_preference: ReminderPreference = ReminderPreference.NONE,
        currency_code: Optional[str] = None,
        reminder_hour: Optional[int] = None,
        reminder_minute: Optional[int] = None,
    ) -> Bill:
        """
        Create a bill (status 'created', version 1) and persist it.

        Missing currency and reminder time fall back to the user's settings.
        """
        settings = self.settings_repo.get(self.user_id) if self.settings_repo else None
        bill = Bill(
            name=name.strip(),
            amount=amount,
            due_date=due_date,
            repeat=repeat,
            reminder_preference=reminder_preference,
            currency_code=currency_code or (settings.currency_code if settings else "INR"),
            reminder_hour=reminder_hour if reminder_hour is not None else (settings.reminder_hour if settings else 9),
            reminder_minute=reminder_minute if reminder_minute is not None else (settings.reminder_minute if settings else 0),
        )
        self.store.insert(bill)
        logger.info(f"User {self.user_id} added {bill} ({bill.id})")
        self._after_change(bill)
        return bill

    def update_bill(self, bill_id: str, **changes) -> Bill:
        """
        Edit fields of a bill.

        Raises:
            LookupError: Unknown bill.
            ValueError: Unknown field or invalid value.
        """
        bill = self.get_bill(bill_id)
        if not bill.apply_changes(**changes):
            return bill
        self.store.update(bill)
        self._after_change(bill)
        return bill

    def delete_bill(self, bill_id: str) -> Bill:
        """Tombstone a bill; it disappears locally once the remote delete is confirmed."""
        bill = self.get_bill(bill_id)
        bill.mark_as_deleted()
        self.store.update(bill)
        logger.info(f"User {self.user_id} deleted bill {bill.id} (pending remote delete)")
        self._after_change(bill)
        return bill

    def mark_paid(self, bill_id: str) -> Optional[Bill]:
        """
        Mark a bill paid. A monthly bill rolls over into next month's bill.

        Returns:
            The newly created next bill, or None.
        """
        bill = self.get_bill(bill_id)
        if bill.paid:
            return None
        bill.apply_changes(paid=True)
        self.store.update(bill)
        self._after_change(bill)

        if not bill.is_monthly:
            return None
        next_bill = bill.next_month_bill()
        self.store.insert(next_bill)
        logger.info(f"Rolled '{bill.name}' over to {next_bill.due_date:%Y-%m-%d} ({next_bill.id})")
        self._after_change(next_bill)
        return next_bill

    # ── SYNC ──────────────────────────────────────────────

    async def sync_now(self) -> SyncResult:
        return await self.sync.sync_now()

    async def load(self) -> list[Bill]:
        """Session start: re-arm reminders and resume any unfinished upload."""
        bills = self.list_bills()
        if self.notifier is not None:
            self.notifier.reschedule_all(self.user_id, bills)
        self.sync.resume_pending_sync()
        return bills

    async def on_remote_change(self, bills: list[Bill]) -> None:
        """Pulled bills replaced local copies; their reminders must follow."""
        for bill in bills:
            self._rearm(bill)

    # ── HELPERS ───────────────────────────────────────────

    def _after_change(self, bill: Bill) -> None:
        self._rearm(bill)
        self.sync.mark_dirty(bill)

    def _rearm(self, bill: Bill) -> None:
        if self.notifier is None:
            return
        try:
            if bill.is_deleted or bill.paid:
                self.notifier.cancel_bill_reminder(self.user_id, bill.id)
            else:
                self.notifier.schedule_bill_reminder(self.user_id, bill)
        except Exception as e:
            logger.error(f"Could not update reminder for bill {bill.id}: {e}")
