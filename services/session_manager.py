"""
services/session_manager.py
---------------------------
Per-user session registry and app lifecycle wiring.

A session bundles the objects that serve one user: the local store bound
to their namespace, their retry queue, their sync engine and the bill
service on top. Sessions are created lazily on the user's first command
and reused afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from repositories.bill_repo import BillRepository
from repositories.sync_queue_repo import SyncQueueRepository
from services.bill_service import BillService
from services.sync_service import SyncService
from utils.logger import get_logger

logger = get_logger(__name__)


class LifecycleEvent(str, Enum):
    STARTUP = "startup"
    FOREGROUND = "foreground"
    BACKGROUND = "background"
    TERMINATE = "terminate"


@dataclass
class UserSession:
    user_id: str
    store: BillRepository
    queue: SyncQueueRepository
    sync: SyncService
    bills: BillService


class SessionManager:
    """
    Owns every open ``UserSession``.

    Args:
        remote: Remote store shared by all sessions.
        connectivity: Reachability probe shared by all sessions.
        notifier: Reminder scheduler, or None.
        settings_repo: Per-user settings, or None.
        sync_options: Keyword arguments forwarded to ``SyncService``.
        store_factory: Builds the local store for a user id.
        queue_factory: Builds the retry queue for a user id.
        known_users: Returns every user with stored bills.
    """

    def __init__(
        self,
        remote,
        connectivity,
        notifier=None,
        settings_repo=None,
        sync_options: Optional[dict] = None,
        store_factory: Callable = BillRepository,
        queue_factory: Callable = SyncQueueRepository,
        known_users: Callable[[], list[str]] = BillRepository.list_users,
    ):
        self.remote = remote
        self.connectivity = connectivity
        self.notifier = notifier
        self.settings_repo = settings_repo
        self.sync_options = sync_options or {}
        self.store_factory = store_factory
        self.queue_factory = queue_factory
        self.known_users = known_users
        self._sessions: dict[str, UserSession] = {}

    def __contains__(self, user_id) -> bool:
        return str(user_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def sessions(self) -> list[UserSession]:
        return list(self._sessions.values())

    def get(self, user_id) -> UserSession:
        """Return the user's session, opening it on first use."""
        user_id = str(user_id)
        session = self._sessions.get(user_id)
        if session is None:
            session = self._open(user_id)
            self._sessions[user_id] = session
        return session

    def _open(self, user_id: str) -> UserSession:
        store = self.store_factory(user_id)
        queue = self.queue_factory(user_id)
        sync = SyncService(store, self.remote, self.connectivity, queue, **self.sync_options)
        sync.set_user_id(user_id)
        bills = BillService(user_id, store, sync, self.notifier, self.settings_repo)
        sync.add_remote_change_listener(bills.on_remote_change)
        logger.info(f"Opened session for user {user_id}")
        return UserSession(user_id, store, queue, sync, bills)

    async def close(self, user_id) -> Optional[UserSession]:
        """Stop the user's sync engine and forget the session."""
        session = self._sessions.pop(str(user_id), None)
        if session is not None:
            session.sync.set_user_id(None)
            await session.sync.close()
            logger.info(f"Closed session for user {user_id}")
        return session

    # ── LIFECYCLE ─────────────────────────────────────────

    async def handle(self, event: LifecycleEvent) -> None:
        logger.info(f"Lifecycle event: {event.value}")
        if event is LifecycleEvent.STARTUP:
            await self._on_startup()
        elif event is LifecycleEvent.FOREGROUND:
            for session in self.sessions():
                session.sync.on_resume()
        elif event is LifecycleEvent.BACKGROUND:
            await self._flush_all()
        elif event is LifecycleEvent.TERMINATE:
            await self._flush_all()
            for user_id in list(self._sessions):
                await self.close(user_id)

    async def _on_startup(self) -> None:
        """Open a session per stored user: reminders are re-armed, interrupted uploads resumed."""
        try:
            user_ids = self.known_users()
        except Exception as e:
            logger.error(f"Could not list stored users: {e}")
            return
        for user_id in user_ids:
            await self.get(user_id).bills.load()
        if user_ids:
            logger.info(f"Restored {len(user_ids)} session(s) at startup")

    async def _flush_all(self) -> None:
        for session in self.sessions():
            result = await session.sync.on_background()
            if not result.success:
                logger.warning(f"Background flush for {session.user_id} incomplete: {result.error}")
