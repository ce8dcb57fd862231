"""
main.py
-------
Entry point for the BillMinder Telegram bot.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Initialize Firebase and build the sync, reminder and account services.
    - Configure and start the Telegram bot with all handlers.
    - Map bot lifecycle and connectivity changes onto the sync engines.
"""

import asyncio
import contextlib

from telegram import BotCommand
from telegram.ext import Application, CommandHandler

from cloud.firestore_store import FirestoreBillStore, init_firebase
from cloud.identity import FirebaseIdentityStore
from config import (
    CONNECTIVITY_CHECK_HOST,
    CONNECTIVITY_CHECK_PORT,
    CONNECTIVITY_POLL_SECONDS,
    CONNECTIVITY_TIMEOUT_SECONDS,
    FIREBASE_CREDENTIALS_PATH,
    REMINDER_MODE,
    SYNC_DEBOUNCE_SECONDS,
    SYNC_MAX_BATCH_SIZE,
    SYNC_RESUME_DELAY_SECONDS,
    SYNC_STARTUP_DELAY_SECONDS,
    TELEGRAM_BOT_TOKEN,
)
from db.connection import close_pool, init_pool
from db.init_db import create_tables
from handlers.account_handler import delete_account_command
from handlers.bill_handler import (
    add_bill_command,
    bills_command,
    delete_bill_command,
    edit_bill_command,
    overdue_command,
    paid_command,
)
from handlers.common import ACCOUNT_KEY, NOTIFIER_KEY, SESSIONS_KEY, SETTINGS_KEY
from handlers.settings_handler import (
    currency_command,
    notifications_command,
    remind_at_command,
    settings_command,
)
from handlers.start_handler import help_command, myid_command, start_command
from handlers.sync_handler import sync_command, sync_status_command
from repositories.settings_repo import SettingsRepository
from services.account_service import AccountDeletionService
from services.notification_service import NotificationService
from services.reminder_engine import ReminderEngine, ReminderMode
from services.session_manager import LifecycleEvent, SessionManager
from utils.connectivity import ConnectivityMonitor
from utils.logger import get_logger

logger = get_logger(__name__)

_WATCH_TASK_KEY = "connectivity_watch"

COMMANDS = [
    BotCommand("start", "🚀 Start the bot"),
    BotCommand("help", "📖 Show help"),
    BotCommand("add_bill", "➕ Add a bill"),
    BotCommand("bills", "🧾 List bills"),
    BotCommand("overdue", "🔴 Overdue bills"),
    BotCommand("paid", "✅ Mark a bill paid"),
    BotCommand("edit_bill", "✏️ Edit a bill"),
    BotCommand("delete_bill", "🗑️ Delete a bill"),
    BotCommand("sync", "🔄 Sync now"),
    BotCommand("sync_status", "☁️ Sync status"),
    BotCommand("settings", "⚙️ Settings"),
    BotCommand("currency", "💱 Default currency"),
    BotCommand("remind_at", "⏰ Default reminder time"),
    BotCommand("notifications", "🔔 Reminders on/off"),
    BotCommand("myid", "🆔 Your Telegram ID"),
    BotCommand("delete_account", "⚠️ Delete your account"),
]


async def watch_connectivity(monitor: ConnectivityMonitor, sessions: SessionManager) -> None:
    """Treat every offline -> online transition as the app coming back to the foreground."""
    was_online = None
    async for online in monitor.watch(CONNECTIVITY_POLL_SECONDS):
        if online and was_online is False:
            await sessions.handle(LifecycleEvent.FOREGROUND)
        was_online = online


async def on_startup(application: Application) -> None:
    """post_init: register commands, restore sessions, start watching connectivity."""
    await application.bot.set_my_commands(COMMANDS)
    logger.info("Bot commands menu registered successfully.")

    sessions: SessionManager = application.bot_data[SESSIONS_KEY]
    await sessions.handle(LifecycleEvent.STARTUP)
    application.bot_data[_WATCH_TASK_KEY] = asyncio.create_task(
        watch_connectivity(sessions.connectivity, sessions)
    )


async def on_stop(application: Application) -> None:
    """post_stop: stop watching and flush every open session."""
    task = application.bot_data.pop(_WATCH_TASK_KEY, None)
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await application.bot_data[SESSIONS_KEY].handle(LifecycleEvent.TERMINATE)


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Database + Firebase setup ──────────────────────
    logger.info("Initializing database...")
    init_pool()
    create_tables()
    init_firebase(FIREBASE_CREDENTIALS_PATH)

    # ── 2. Build the Telegram application ─────────────────
    logger.info("Starting Telegram bot...")
    app = (
        Application.builder()
        .token(TELEGRAM_BOT_TOKEN)
        .post_init(on_startup)
        .post_stop(on_stop)
        .build()
    )

    # ── 3. Wire services ──────────────────────────────────
    mode = ReminderMode(REMINDER_MODE)
    if mode is ReminderMode.ACCELERATED:
        logger.warning("⚠️ REMINDER_MODE=accelerated: reminders fire seconds after changes. Do not use in production.")

    settings_repo = SettingsRepository()
    remote = FirestoreBillStore()
    notifier = NotificationService(app.job_queue, ReminderEngine(mode), settings_repo)
    connectivity = ConnectivityMonitor(
        CONNECTIVITY_CHECK_HOST, CONNECTIVITY_CHECK_PORT, CONNECTIVITY_TIMEOUT_SECONDS
    )
    app.bot_data[SETTINGS_KEY] = settings_repo
    app.bot_data[NOTIFIER_KEY] = notifier
    app.bot_data[SESSIONS_KEY] = SessionManager(
        remote,
        connectivity,
        notifier,
        settings_repo,
        sync_options={
            "debounce_seconds": SYNC_DEBOUNCE_SECONDS,
            "max_batch_size": SYNC_MAX_BATCH_SIZE,
            "startup_delay": SYNC_STARTUP_DELAY_SECONDS,
            "resume_delay": SYNC_RESUME_DELAY_SECONDS,
        },
    )
    app.bot_data[ACCOUNT_KEY] = AccountDeletionService(
        notifier, remote, FirebaseIdentityStore(), settings_repo
    )

    # ── 4. Register command handlers ──────────────────────
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("myid", myid_command))
    app.add_handler(CommandHandler("add_bill", add_bill_command))
    app.add_handler(CommandHandler("bills", bills_command))
    app.add_handler(CommandHandler("overdue", overdue_command))
    app.add_handler(CommandHandler("paid", paid_command))
    app.add_handler(CommandHandler("edit_bill", edit_bill_command))
    app.add_handler(CommandHandler("delete_bill", delete_bill_command))
    app.add_handler(CommandHandler("sync", sync_command))
    app.add_handler(CommandHandler("sync_status", sync_status_command))
    app.add_handler(CommandHandler("settings", settings_command))
    app.add_handler(CommandHandler("currency", currency_command))
    app.add_handler(CommandHandler("remind_at", remind_at_command))
    app.add_handler(CommandHandler("notifications", notifications_command))
    app.add_handler(CommandHandler("delete_account", delete_account_command))

    # ── 5. Start polling ──────────────────────────────────
    logger.info("🚀 BillMinder is running! Press Ctrl+C to stop.")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message"])

    # ── 6. Cleanup on shutdown ────────────────────────────
    close_pool()
    logger.info("BillMinder stopped.")


if __name__ == "__main__":
    main()
