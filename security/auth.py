"""
security/auth.py
----------------
Whitelist gate for bot handlers. Bills are private data, so only the
configured Telegram user ids may use the bot.
"""

from functools import wraps
from typing import Callable, Iterable, Optional

from telegram import Update
from telegram.ext import ContextTypes

from config import ALLOWED_USER_IDS
from utils.logger import get_logger

logger = get_logger(__name__)


def is_authorized(user_id: int, allowed: Optional[Iterable[int]] = None) -> bool:
    """An empty whitelist allows everyone (development mode)."""
    allowed = ALLOWED_USER_IDS if allowed is None else list(allowed)
    return not allowed or user_id in allowed


def authorized_only(func: Callable):
    """
    Decorator that restricts a handler to whitelisted users.

    Usage:
        @authorized_only
        async def my_handler(update, context):
            ...
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not is_authorized(user.id):
            logger.warning(f"🚫 Unauthorized access attempt: user_id={user.id}, username={user.username}")
            if update.effective_message:
                await update.effective_message.reply_text("⛔ Sorry, this bot is private.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
