"""
models/sync.py
--------------
Value types shared by the sync engine and its adapters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from models.bill import Bill, SyncStatus, utc_now

# Seconds to wait before retry N (1-based); after the last one the item is
# a standing failure that only an explicit "sync now" retries.
BACKOFF_SCHEDULE: tuple[int, ...] = (5, 10, 30, 60, 120)
MAX_RETRY_ATTEMPTS: int = len(BACKOFF_SCHEDULE)


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"


class SyncAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def for_status(cls, status: SyncStatus) -> "SyncAction":
        if status is SyncStatus.DELETED:
            return cls.DELETE
        if status is SyncStatus.CREATED:
            return cls.CREATE
        return cls.UPDATE


@dataclass(frozen=True)
class RemoteWrite:
    """One operation in a remote batch: upsert ``fields`` or delete when ``fields`` is None."""
    bill_id: str
    fields: Optional[dict] = None

    @property
    def is_delete(self) -> bool:
        return self.fields is None

    @classmethod
    def for_bill(cls, bill: Bill) -> "RemoteWrite":
        if bill.is_deleted:
            return cls(bill.id)
        return cls(bill.id, bill.to_remote())


@dataclass
class SyncQueueItem:
    """
    Crash-safe retry bookkeeping for one bill.

    This is an observability and backoff aid only. What needs syncing is
    always recomputed from the bills' own sync status.
    """
    bill_id: str
    action: SyncAction
    queued_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None

    def record_failure(self, error: str, now: Optional[datetime] = None) -> None:
        self.retry_count += 1
        self.last_error = error
        self.last_attempt_at = now or utc_now()

    @property
    def should_retry(self) -> bool:
        return self.retry_count < MAX_RETRY_ATTEMPTS

    @property
    def backoff_seconds(self) -> int:
        if self.retry_count == 0:
            return 0
        return BACKOFF_SCHEDULE[min(self.retry_count, MAX_RETRY_ATTEMPTS) - 1]

    def can_retry_now(self, now: Optional[datetime] = None) -> bool:
        """Eligible once the backoff for the current attempt count has elapsed."""
        if not self.should_retry:
            return False
        if self.last_attempt_at is None:
            return True
        elapsed = ((now or utc_now()) - self.last_attempt_at).total_seconds()
        return elapsed >= self.backoff_seconds


@dataclass
class SyncResult:
    success: bool
    bills_synced: int = 0
    bills_pulled: int = 0
    deferred: int = 0
    error: Optional[str] = None

    def __str__(self) -> str:
        if self.success:
            return f"synced={self.bills_synced} pulled={self.bills_pulled} deferred={self.deferred}"
        return f"failed: {self.error}"
