"""
handlers/account_handler.py
---------------------------
Handles /delete_account. Deletion is permanent, so the command has to be
repeated with the word CONFIRM.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import ACCOUNT_KEY, SESSIONS_KEY, command_text, current_session
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from services.account_service import AccountDeletionError
from utils.logger import get_logger

logger = get_logger(__name__)

WARNING_TEXT = (
    "⚠️ *Delete account*\n\n"
    "This permanently deletes all your bills, reminders and settings, "
    "both here and in the cloud. It cannot be undone.\n\n"
    "To continue send:\n`/delete_account CONFIRM`"
)


@authorized_only
@rate_limited
async def delete_account_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete_account [CONFIRM]."""
    if command_text(update) != "CONFIRM":
        await update.message.reply_text(WARNING_TEXT, parse_mode="Markdown")
        return

    user_id = str(update.effective_user.id)
    session = current_session(update, context)
    steps: list[str] = []
    try:
        await context.bot_data[ACCOUNT_KEY].delete_account(
            user_id, session.store, session.queue, session.sync, on_progress=steps.append,
        )
    except AccountDeletionError as e:
        logger.error(f"Account deletion for {user_id} stopped at step {e.step}")
        await update.message.reply_text(f"❌ {e.user_message}")
        return
    finally:
        await context.bot_data[SESSIONS_KEY].close(user_id)

    logger.info(f"User {user_id} deleted their account ({len(steps)} progress updates)")
    await update.message.reply_text("🗑️ Your account and all your data have been deleted. Goodbye 👋")
