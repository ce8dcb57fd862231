"""
handlers/common.py
------------------
Shared lookups for handlers. Long-lived services are stored in
``application.bot_data`` by ``main.py``.
"""

from telegram import Update
from telegram.ext import ContextTypes

from services.session_manager import UserSession

SESSIONS_KEY = "sessions"
SETTINGS_KEY = "settings_repo"
NOTIFIER_KEY = "notifier"
ACCOUNT_KEY = "account_service"


def current_session(update: Update, context: ContextTypes.DEFAULT_TYPE) -> UserSession:
    """The calling user's session, opened on first use."""
    return context.bot_data[SESSIONS_KEY].get(update.effective_user.id)


def command_text(update: Update) -> str:
    """Message text with the leading /command stripped."""
    parts = (update.message.text or "").split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""
