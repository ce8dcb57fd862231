"""
db/init_db.py
-------------
Creates the local store schema (tables) if it does not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from db.connection import pooled_connection
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Bills: the authoritative local copy of every bill, scoped per user
CREATE TABLE IF NOT EXISTS bills (
    id                  TEXT NOT NULL,
    user_id             TEXT NOT NULL,
    name                VARCHAR(200) NOT NULL,
    amount              NUMERIC(12,2) NOT NULL,
    currency_code       CHAR(3) NOT NULL DEFAULT 'INR',
    due_date            TIMESTAMP NOT NULL,
    repeat              VARCHAR(10) NOT NULL DEFAULT 'one-time'
                        CHECK (repeat IN ('one-time', 'monthly')),
    paid                BOOLEAN NOT NULL DEFAULT FALSE,
    reminder_preference VARCHAR(20) NOT NULL DEFAULT 'none',
    reminder_hour       SMALLINT NOT NULL DEFAULT 9 CHECK (reminder_hour BETWEEN 0 AND 23),
    reminder_minute     SMALLINT NOT NULL DEFAULT 0 CHECK (reminder_minute BETWEEN 0 AND 59),
    sync_status         VARCHAR(10) NOT NULL DEFAULT 'created'
                        CHECK (sync_status IN ('clean', 'created', 'updated', 'deleted')),
    version             INT NOT NULL DEFAULT 1,
    last_modified       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (user_id, id)
);

-- Per-user pull checkpoint
CREATE TABLE IF NOT EXISTS sync_checkpoints (
    user_id             TEXT PRIMARY KEY,
    last_sync_time      TIMESTAMPTZ
);

-- Retry bookkeeping; never authoritative, safe to truncate
CREATE TABLE IF NOT EXISTS sync_queue (
    user_id             TEXT NOT NULL,
    bill_id             TEXT NOT NULL,
    action              VARCHAR(10) NOT NULL CHECK (action IN ('create', 'update', 'delete')),
    queued_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    retry_count         INT NOT NULL DEFAULT 0,
    last_error          TEXT,
    last_attempt_at     TIMESTAMPTZ,
    PRIMARY KEY (user_id, bill_id)
);

-- User preferences
CREATE TABLE IF NOT EXISTS user_settings (
    user_id                 TEXT PRIMARY KEY,
    notifications_enabled   BOOLEAN NOT NULL DEFAULT TRUE,
    currency_code           CHAR(3) NOT NULL DEFAULT 'INR',
    reminder_hour           SMALLINT NOT NULL DEFAULT 9,
    reminder_minute         SMALLINT NOT NULL DEFAULT 0,
    updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Indexes for the dirty-set scan and per-user listing
CREATE INDEX IF NOT EXISTS idx_bills_user_sync ON bills(user_id, sync_status);
CREATE INDEX IF NOT EXISTS idx_bills_user_due ON bills(user_id, due_date);
"""


def create_tables() -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    with pooled_connection() as conn:
        try:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
            logger.info("Local store schema initialized successfully.")
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to initialize schema: {e}")
            raise


if __name__ == "__main__":
    from db.connection import init_pool
    init_pool()
    create_tables()
    print("Local store schema created successfully.")
