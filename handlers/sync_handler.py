"""
handlers/sync_handler.py
------------------------
Handles /sync and /sync_status.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import current_session
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.formatting import SYNC_STATE_LABELS, format_timestamp
from utils.logger import get_logger

logger = get_logger(__name__)


@authorized_only
@rate_limited
async def sync_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /sync - upload pending changes and pull remote ones right away."""
    session = current_session(update, context)
    await update.message.reply_text("🔄 Syncing...")
    result = await session.bills.sync_now()

    if result.success:
        msg = f"✅ Sync complete\n⬆️ Uploaded: {result.bills_synced}\n⬇️ Pulled: {result.bills_pulled}"
    else:
        msg = f"⚠️ Sync failed: {result.error}\nYour changes are saved and will be retried."
    await update.message.reply_text(msg)


@authorized_only
@rate_limited
async def sync_status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /sync_status."""
    status = current_session(update, context).bills.sync_status()
    lines = [
        "☁️ *Sync status*\n",
        f"State: {SYNC_STATE_LABELS[status.state]}",
        f"Pending changes: {status.pending_count}",
        f"Last sync: {format_timestamp(status.last_sync_time)}",
    ]
    if status.last_error:
        lines.append(f"Last error: `{status.last_error}`")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")
