"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── Telegram ──────────────────────────────────────────────
TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

# ── PostgreSQL (local store) ──────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "billminder")
DB_USER: str = os.getenv("DB_USER", "billminder_user")
DB_PASS: str = os.getenv("DB_PASS", "")

DATABASE_URL: str = (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# ── Firebase (remote store) ───────────────────────────────
FIREBASE_CREDENTIALS_PATH: str = os.getenv("FIREBASE_CREDENTIALS_PATH", "")
FIRESTORE_USERS_COLLECTION: str = os.getenv("FIRESTORE_USERS_COLLECTION", "users")
FIRESTORE_BILLS_COLLECTION: str = os.getenv("FIRESTORE_BILLS_COLLECTION", "bills")

# ── Sync ──────────────────────────────────────────────────
SYNC_DEBOUNCE_SECONDS: float = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "30"))
SYNC_MAX_BATCH_SIZE: int = int(os.getenv("SYNC_MAX_BATCH_SIZE", "400"))
SYNC_STARTUP_DELAY_SECONDS: float = float(os.getenv("SYNC_STARTUP_DELAY_SECONDS", "5"))
SYNC_RESUME_DELAY_SECONDS: float = float(os.getenv("SYNC_RESUME_DELAY_SECONDS", "2"))

# ── Reachability ──────────────────────────────────────────
CONNECTIVITY_CHECK_HOST: str = os.getenv("CONNECTIVITY_CHECK_HOST", "firestore.googleapis.com")
CONNECTIVITY_CHECK_PORT: int = int(os.getenv("CONNECTIVITY_CHECK_PORT", "443"))
CONNECTIVITY_TIMEOUT_SECONDS: float = float(os.getenv("CONNECTIVITY_TIMEOUT_SECONDS", "3"))
CONNECTIVITY_POLL_SECONDS: float = float(os.getenv("CONNECTIVITY_POLL_SECONDS", "30"))

# ── Reminders ─────────────────────────────────────────────
# 'real' or 'accelerated'. Accelerated mode swaps day offsets for seconds
# so delivery can be watched end to end; never enable it in production.
REMINDER_MODE: str = os.getenv("REMINDER_MODE", "real").strip().lower()
DEFAULT_REMINDER_HOUR: int = int(os.getenv("DEFAULT_REMINDER_HOUR", "9"))
DEFAULT_REMINDER_MINUTE: int = int(os.getenv("DEFAULT_REMINDER_MINUTE", "0"))

# ── Security ──────────────────────────────────────────────
_raw_ids = os.getenv("ALLOWED_USER_IDS", "")
ALLOWED_USER_IDS: list[int] = (
    [int(uid.strip()) for uid in _raw_ids.split(",") if uid.strip()]
    if _raw_ids
    else []
)

# ── Rate Limiting ─────────────────────────────────────────
RATE_LIMIT_MESSAGES: int = int(os.getenv("RATE_LIMIT_MESSAGES", "30"))
RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# ── Misc ──────────────────────────────────────────────────
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "INR").upper()
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
