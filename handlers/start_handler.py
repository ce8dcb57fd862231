"""
handlers/start_handler.py
--------------------------
Handles /start, /help and /myid.
/start opens the user's session: reminders are re-armed and any
unfinished upload is resumed.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import current_session
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)

HELP_TEXT = """
🤖 *Welcome to BillMinder!*
Your personal bill tracker 🧾

*📝 Bills:*
/add\\_bill - Add a bill
/bills - List bills and totals
/overdue - Unpaid bills past due
/paid - Mark a bill paid (e.g. /paid 2)
/edit\\_bill - Edit a bill
/delete\\_bill - Delete a bill

*☁️ Sync:*
/sync - Sync now
/sync\\_status - Pending changes and last sync

*⚙️ Settings:*
/settings - Show settings
/currency - Default currency (e.g. /currency EUR)
/remind\\_at - Default reminder time (e.g. /remind\\_at 09:00)
/notifications - Turn reminders on or off

/myid - Your Telegram ID
/delete\\_account - Permanently delete your data
"""


@authorized_only
@rate_limited
async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start - open the session and show a welcome message."""
    user = update.effective_user
    bills = await current_session(update, context).bills.load()
    logger.info(f"User {user.id} ({user.first_name}) started the bot with {len(bills)} bill(s).")

    await update.message.reply_text(
        f"Hi {user.first_name}! 👋\n"
        f"I keep track of your bills and remind you before they are due.\n"
        f"You have {len(bills)} bill(s).\n\n"
        f"Send /help to see all commands.",
    )


@authorized_only
@rate_limited
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show all available commands."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def myid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /myid command - show user's Telegram ID for whitelisting."""
    user = update.effective_user
    await update.message.reply_text(
        f"🆔 Your ID: `{user.id}`\n"
        f"Add it to `ALLOWED_USER_IDS` in `.env` to lock the bot down.",
        parse_mode="Markdown",
    )
