"""
services/account_service.py
---------------------------
Permanent deletion of a user's account and every trace of their data.

Deletion order matters:
    1. Cancel scheduled reminders (local, failures are logged and ignored)
    2. Delete remote bill documents and the user document
    3. Delete the remote identity record
    4. Clear the local store namespace and retry queue
    5. Clear stored preferences

Remote data goes before the identity because deleting the identity can
revoke the credentials needed to delete the data. Local state goes last
because it is the cheapest to redo if an earlier step has to be retried.
"""

from typing import Callable, Optional

from utils.logger import get_logger

logger = get_logger(__name__)

TOTAL_STEPS = 5


class AccountDeletionError(Exception):
    """A fatal teardown step failed; later steps were not run."""

    def __init__(self, step: int, user_message: str):
        super().__init__(f"Account deletion failed at step {step}/{TOTAL_STEPS}: {user_message}")
        self.step = step
        self.user_message = user_message


def _user_message(step: int, error: Exception) -> str:
    """Map a step failure to something the user can act on."""
    text = f"{type(error).__name__} {error}".lower()
    if any(key in text for key in ("recent-login", "unauthenticated", "credential", "token")):
        return "For security, please sign in again and then retry deleting your account."
    if any(key in text for key in ("network", "unavailable", "timeout", "deadline")):
        return "Network error. Please check your connection and try again."
    if step == 2:
        return "Failed to delete cloud data. Please try again."
    if step == 3:
        return "Your cloud data was deleted but the account itself was not. Please try again."
    if step == 4:
        return "Failed to clear data stored on this device. Please try again."
    return "Failed to clear saved preferences. Please try again."


class AccountDeletionService:
    """
    Runs the five-step teardown.

    Args:
        notifier: Reminder scheduler with ``cancel_all(user_id)``.
        remote: Remote store with async ``delete_all(user_id)``.
        identity: Identity store with async ``delete_identity(user_id)``.
        settings_repo: Preference storage with ``clear(user_id)``.
    """

    def __init__(self, notifier, remote, identity, settings_repo):
        self.notifier = notifier
        self.remote = remote
        self.identity = identity
        self.settings_repo = settings_repo

    async def delete_account(
        self,
        user_id: str,
        store,
        queue=None,
        sync=None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Delete everything for ``user_id``.

        The sync engine, if given, is detached first so no queued upload can
        recreate remote documents mid-teardown.

        Raises:
            AccountDeletionError: When step 2, 3, 4 or 5 fails.
        """
        def progress(message: str) -> None:
            logger.info(f"[delete {user_id}] {message}")
            if on_progress is not None:
                on_progress(message)

        if sync is not None:
            sync.set_user_id(None)
            await sync.close()

        progress("Step 1/5: cancelling reminders")
        try:
            self.notifier.cancel_all(user_id)
        except Exception as e:
            logger.warning(f"Could not cancel reminders for {user_id}, continuing: {e}")

        progress("Step 2/5: deleting cloud data")
        await self._fatal_step(2, self.remote.delete_all(user_id))

        progress("Step 3/5: deleting account")
        await self._fatal_step(3, self.identity.delete_identity(user_id))

        progress("Step 4/5: clearing local data")
        await self._fatal_step(4, self._clear_local(store, queue))

        progress("Step 5/5: clearing preferences")
        await self._fatal_step(5, self._clear_settings(user_id))

        progress("Account deleted")

    async def _fatal_step(self, step: int, operation) -> None:
        try:
            await operation
        except Exception as e:
            logger.error(f"Account deletion step {step}/{TOTAL_STEPS} failed: {e}")
            raise AccountDeletionError(step, _user_message(step, e)) from e

    @staticmethod
    async def _clear_local(store, queue) -> None:
        store.clear()
        if queue is not None:
            queue.clear()

    async def _clear_settings(self, user_id: str) -> None:
        self.settings_repo.clear(user_id)
