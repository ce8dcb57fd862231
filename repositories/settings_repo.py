"""
repositories/settings_repo.py
-----------------------------
Data access layer for per-user preferences (`user_settings` table).
"""

from dataclasses import dataclass

from config import DEFAULT_CURRENCY, DEFAULT_REMINDER_HOUR, DEFAULT_REMINDER_MINUTE
from db.connection import pooled_connection
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class UserSettings:
    user_id: str
    notifications_enabled: bool = True
    currency_code: str = DEFAULT_CURRENCY
    reminder_hour: int = DEFAULT_REMINDER_HOUR
    reminder_minute: int = DEFAULT_REMINDER_MINUTE


class SettingsRepository:
    """Repository for the user_settings table."""

    def get(self, user_id: str) -> UserSettings:
        """Stored settings, or defaults when the user never saved any."""
        sql = """
            SELECT notifications_enabled, currency_code, reminder_hour, reminder_minute
            FROM user_settings WHERE user_id = %s;
        """
        with pooled_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (str(user_id),))
                row = cur.fetchone()
        if not row:
            return UserSettings(user_id=str(user_id))
        return UserSettings(
            user_id=str(user_id),
            notifications_enabled=row[0],
            currency_code=row[1].strip(),
            reminder_hour=row[2],
            reminder_minute=row[3],
        )

    def save(self, settings: UserSettings) -> UserSettings:
        sql = """
            INSERT INTO user_settings
                (user_id, notifications_enabled, currency_code, reminder_hour, reminder_minute)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE SET
                notifications_enabled = EXCLUDED.notifications_enabled,
                currency_code = EXCLUDED.currency_code,
                reminder_hour = EXCLUDED.reminder_hour,
                reminder_minute = EXCLUDED.reminder_minute,
                updated_at = NOW();
        """
        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(sql, (
                        settings.user_id, settings.notifications_enabled,
                        settings.currency_code, settings.reminder_hour, settings.reminder_minute,
                    ))
                conn.commit()
                logger.info(f"Saved settings for user {settings.user_id}")
                return settings
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to save settings for {settings.user_id}: {e}")
                raise

    def clear(self, user_id: str) -> None:
        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM user_settings WHERE user_id = %s;", (str(user_id),))
                conn.commit()
                logger.info(f"Cleared settings for user {user_id}")
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to clear settings for {user_id}: {e}")
                raise
