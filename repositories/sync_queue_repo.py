"""
repositories/sync_queue_repo.py
-------------------------------
Durable retry bookkeeping for the sync engine (`sync_queue` table).

The queue is advisory: dropping it loses backoff history, never data.
"""

from db.connection import pooled_connection
from models.sync import SyncAction, SyncQueueItem
from utils.logger import get_logger

logger = get_logger(__name__)


class SyncQueueRepository:
    """Repository for the sync_queue table, scoped to one user."""

    def __init__(self, user_id: str):
        self.user_id = str(user_id)

    def get_all(self) -> dict[str, SyncQueueItem]:
        """All queue entries for the user, keyed by bill id."""
        sql = """
            SELECT bill_id, action, queued_at, retry_count, last_error, last_attempt_at
            FROM sync_queue WHERE user_id = %s;
        """
        with pooled_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (self.user_id,))
                items = [self._row_to_item(r) for r in cur.fetchall()]
        return {item.bill_id: item for item in items}

    def enqueue(self, bill_id: str, action: SyncAction) -> None:
        """Record a pending action; an existing entry keeps its retry history."""
        sql = """
            INSERT INTO sync_queue (user_id, bill_id, action) VALUES (%s, %s, %s)
            ON CONFLICT (user_id, bill_id) DO UPDATE SET action = EXCLUDED.action;
        """
        self._write(sql, (self.user_id, bill_id, action.value))

    def save(self, item: SyncQueueItem) -> None:
        sql = """
            INSERT INTO sync_queue
                (user_id, bill_id, action, queued_at, retry_count, last_error, last_attempt_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, bill_id) DO UPDATE SET
                action = EXCLUDED.action, retry_count = EXCLUDED.retry_count,
                last_error = EXCLUDED.last_error, last_attempt_at = EXCLUDED.last_attempt_at;
        """
        self._write(sql, (
            self.user_id, item.bill_id, item.action.value, item.queued_at,
            item.retry_count, item.last_error, item.last_attempt_at,
        ))

    def remove(self, bill_ids: list[str]) -> None:
        if not bill_ids:
            return
        sql = "DELETE FROM sync_queue WHERE user_id = %s AND bill_id = ANY(%s);"
        self._write(sql, (self.user_id, list(bill_ids)))

    def clear(self) -> None:
        self._write("DELETE FROM sync_queue WHERE user_id = %s;", (self.user_id,))
        logger.info(f"Cleared sync queue for user {self.user_id}")

    def _write(self, sql: str, params: tuple) -> None:
        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Sync queue write failed for {self.user_id}: {e}")
                raise

    @staticmethod
    def _row_to_item(row: tuple) -> SyncQueueItem:
        return SyncQueueItem(
            bill_id=row[0],
            action=SyncAction(row[1]),
            queued_at=row[2],
            retry_count=row[3],
            last_error=row[4],
            last_attempt_at=row[5],
        )
