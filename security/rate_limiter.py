"""
security/rate_limiter.py
------------------------
Per-user sliding-window rate limit for bot commands. Every command can
touch the database and the remote store, so bursts are capped.
"""

import time
from collections import defaultdict, deque
from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS
from utils.logger import get_logger

logger = get_logger(__name__)


class SlidingWindowLimiter:
    """Allows at most ``max_calls`` per ``window`` seconds for each key."""

    def __init__(self, max_calls: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.max_calls = max_calls
        self.window = window
        self._clock = clock
        self._calls: dict[int, deque] = defaultdict(deque)

    def allow(self, key: int) -> bool:
        now = self._clock()
        calls = self._calls[key]
        while calls and calls[0] <= now - self.window:
            calls.popleft()
        if len(calls) >= self.max_calls:
            return False
        calls.append(now)
        return True

    def reset(self) -> None:
        self._calls.clear()


limiter = SlidingWindowLimiter(RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS)


def rate_limited(func: Callable):
    """
    Decorator that enforces the per-user limit.

    Configuration (via .env):
        RATE_LIMIT_MESSAGES: Max commands per window (default: 30).
        RATE_LIMIT_WINDOW_SECONDS: Window duration in seconds (default: 60).
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not limiter.allow(user.id):
            logger.warning(f"⚠️ Rate limit hit for user {user.id}")
            if update.effective_message:
                await update.effective_message.reply_text("⚠️ Too many commands. Please wait a moment and try again.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
