"""
repositories/bill_repo.py
-------------------------
Local store: the authoritative, per-user copy of every bill.
All SQL queries related to the `bills` and `sync_checkpoints` tables live here.

A repository instance is bound to one user with ``initialize(user_id)``;
every statement is scoped to that user so namespaces never leak.
Each write is a single committed transaction. Storage failures are
logged, rolled back and re-raised: a failed write is never reported as
a success.
"""

from datetime import datetime
from typing import Optional

from db.connection import pooled_connection
from models.bill import Bill, SyncStatus, parse_reminder_preference, parse_sync_status
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, name, amount, currency_code, due_date, repeat, paid, reminder_preference, "
    "reminder_hour, reminder_minute, sync_status, version, last_modified, updated_at"
)


class BillRepository:
    """Repository for CRUD operations on the bills table, scoped to one user."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id: Optional[str] = None
        if user_id is not None:
            self.initialize(user_id)

    # ── BINDING ───────────────────────────────────────────

    def initialize(self, user_id: str) -> None:
        """Bind the store to a user namespace (rebinding switches namespaces)."""
        if not user_id:
            raise ValueError("user_id is required to bind the local store")
        if self._user_id != user_id:
            logger.info(f"Local store bound to user {user_id}")
        self._user_id = str(user_id)

    @property
    def user_id(self) -> str:
        if self._user_id is None:
            raise RuntimeError("Local store not initialized. Call initialize(user_id) first.")
        return self._user_id

    @property
    def is_bound(self) -> bool:
        return self._user_id is not None

    # ── READ ──────────────────────────────────────────────

    def get_all(self) -> list[Bill]:
        """All bills for the bound user, tombstones included, in no particular order."""
        sql = f"SELECT {_COLUMNS} FROM bills WHERE user_id = %s;"
        return self._fetch_bills(sql, (self.user_id,))

    def get_dirty(self) -> list[Bill]:
        """Bills with local changes not yet confirmed remotely."""
        sql = f"SELECT {_COLUMNS} FROM bills WHERE user_id = %s AND sync_status <> %s;"
        return self._fetch_bills(sql, (self.user_id, SyncStatus.CLEAN.value))

    def get(self, bill_id: str) -> Optional[Bill]:
        """Fetch a single bill by ID, scoped to the bound user."""
        sql = f"SELECT {_COLUMNS} FROM bills WHERE id = %s AND user_id = %s;"
        rows = self._fetch_bills(sql, (bill_id, self.user_id))
        return rows[0] if rows else None

    # ── WRITE ─────────────────────────────────────────────

    def insert(self, bill: Bill) -> Bill:
        """
        Insert a new bill.

        Raises:
            psycopg2.IntegrityError: If a bill with the same id already exists.
        """
        sql = f"""
            INSERT INTO bills (user_id, {_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s);
        """
        self._write(sql, (self.user_id, *self._bill_params(bill)), f"insert bill {bill.id}")
        logger.info(f"Inserted bill '{bill.name}' ({bill.id}) for user {self.user_id}")
        return bill

    def update(self, bill: Bill) -> Bill:
        """
        Overwrite every stored field of an existing bill.

        Raises:
            LookupError: If the bill does not exist in this namespace.
        """
        sql = """
            UPDATE bills SET
                name = %s, amount = %s, currency_code = %s, due_date = %s, repeat = %s,
                paid = %s, reminder_preference = %s, reminder_hour = %s, reminder_minute = %s,
                sync_status = %s, version = %s, last_modified = %s, updated_at = %s
            WHERE id = %s AND user_id = %s;
        """
        params = (*self._bill_params(bill)[1:], bill.id, self.user_id)
        if self._write(sql, params, f"update bill {bill.id}") == 0:
            raise LookupError(f"Bill {bill.id} not found for user {self.user_id}")
        logger.debug(f"Updated bill {bill.id} (v{bill.version}, {bill.sync_status.value})")
        return bill

    def delete(self, bill_id: str) -> bool:
        """Physically remove a bill. Only for confirmed tombstones."""
        sql = "DELETE FROM bills WHERE id = %s AND user_id = %s;"
        deleted = self._write(sql, (bill_id, self.user_id), f"delete bill {bill_id}") > 0
        if deleted:
            logger.info(f"Removed bill {bill_id} from local store")
        return deleted

    def clear(self) -> None:
        """Drop every row of the bound user's namespace (bills and checkpoint)."""
        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM bills WHERE user_id = %s;", (self.user_id,))
                    cur.execute("DELETE FROM sync_checkpoints WHERE user_id = %s;", (self.user_id,))
                conn.commit()
                logger.info(f"Cleared local store for user {self.user_id}")
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to clear local store for {self.user_id}: {e}")
                raise

    # ── CHECKPOINT ────────────────────────────────────────

    def get_last_sync_time(self) -> Optional[datetime]:
        sql = "SELECT last_sync_time FROM sync_checkpoints WHERE user_id = %s;"
        with pooled_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (self.user_id,))
                row = cur.fetchone()
                return row[0] if row else None

    def set_last_sync_time(self, when: datetime) -> None:
        sql = """
            INSERT INTO sync_checkpoints (user_id, last_sync_time) VALUES (%s, %s)
            ON CONFLICT (user_id) DO UPDATE SET last_sync_time = EXCLUDED.last_sync_time;
        """
        self._write(sql, (self.user_id, when), "set sync checkpoint")

    # ── CROSS-USER ────────────────────────────────────────

    @staticmethod
    def list_users() -> list[str]:
        """Every user id with at least one stored bill (startup re-arming)."""
        sql = "SELECT DISTINCT user_id FROM bills;"
        with pooled_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                return [r[0] for r in cur.fetchall()]

    # ── HELPERS ───────────────────────────────────────────

    def _fetch_bills(self, sql: str, params: tuple) -> list[Bill]:
        with pooled_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [self._row_to_bill(r) for r in cur.fetchall()]

    def _write(self, sql: str, params: tuple, action: str) -> int:
        """Run one statement in its own transaction and return the affected row count."""
        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    affected = cur.rowcount
                conn.commit()
                return affected
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to {action}: {e}")
                raise

    @staticmethod
    def _bill_params(bill: Bill) -> tuple:
        return (
            bill.id, bill.name, bill.amount, bill.currency_code, bill.due_date,
            bill.repeat.value, bill.paid, bill.reminder_preference.value,
            bill.reminder_hour, bill.reminder_minute, bill.sync_status.value,
            bill.version, bill.last_modified, bill.updated_at,
        )

    @staticmethod
    def _row_to_bill(row: tuple) -> Bill:
        """Convert a database row tuple to a Bill domain object."""
        return Bill(
            id=row[0],
            name=row[1],
            amount=row[2],
            currency_code=row[3].strip(),
            due_date=row[4],
            repeat=row[5],
            paid=row[6],
            reminder_preference=parse_reminder_preference(row[7]),
            reminder_hour=row[8],
            reminder_minute=row[9],
            sync_status=parse_sync_status(row[10]),
            version=row[11],
            last_modified=row[12],
            updated_at=row[13],
        )
