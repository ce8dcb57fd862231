"""
handlers/settings_handler.py
----------------------------
Per-user preferences: default currency, default reminder time and
whether reminders are sent at all.
"""

import re

from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import NOTIFIER_KEY, SETTINGS_KEY, command_text, current_session
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.formatting import parse_time
from utils.logger import get_logger

logger = get_logger(__name__)

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


@authorized_only
@rate_limited
async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings - show current preferences."""
    settings = context.bot_data[SETTINGS_KEY].get(update.effective_user.id)
    await update.message.reply_text(
        "⚙️ *Settings*\n\n"
        f"💱 Default currency: {settings.currency_code}\n"
        f"⏰ Default reminder time: {settings.reminder_hour:02d}:{settings.reminder_minute:02d}\n"
        f"🔔 Notifications: {'on' if settings.notifications_enabled else 'off'}\n\n"
        "Change with /currency, /remind\\_at and /notifications",
        parse_mode="Markdown",
    )


@authorized_only
@rate_limited
async def currency_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /currency CUR - default currency for new bills."""
    code = command_text(update).upper()
    if not _CURRENCY_RE.match(code):
        await update.message.reply_text("⚠️ Usage: /currency EUR")
        return

    repo = context.bot_data[SETTINGS_KEY]
    settings = repo.get(update.effective_user.id)
    settings.currency_code = code
    repo.save(settings)
    await update.message.reply_text(f"💱 New bills will use {code}.")


@authorized_only
@rate_limited
async def remind_at_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind_at HH:MM - default reminder time for new bills."""
    try:
        at = parse_time(command_text(update))
    except ValueError:
        await update.message.reply_text("⚠️ Usage: /remind_at 09:00")
        return

    repo = context.bot_data[SETTINGS_KEY]
    settings = repo.get(update.effective_user.id)
    settings.reminder_hour, settings.reminder_minute = at.hour, at.minute
    repo.save(settings)
    await update.message.reply_text(f"⏰ New bills will remind at {at:%H:%M}.")


@authorized_only
@rate_limited
async def notifications_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /notifications on|off."""
    choice = command_text(update).lower()
    if choice not in ("on", "off"):
        await update.message.reply_text("⚠️ Usage: /notifications on  or  /notifications off")
        return

    user_id = str(update.effective_user.id)
    repo = context.bot_data[SETTINGS_KEY]
    settings = repo.get(user_id)
    settings.notifications_enabled = choice == "on"
    repo.save(settings)

    notifier = context.bot_data[NOTIFIER_KEY]
    if settings.notifications_enabled:
        armed = notifier.reschedule_all(user_id, current_session(update, context).bills.list_bills())
        await update.message.reply_text(f"🔔 Notifications on. {armed} reminder(s) scheduled.")
    else:
        notifier.cancel_all(user_id)
        await update.message.reply_text("🔕 Notifications off. All reminders cancelled.")
