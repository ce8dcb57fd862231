"""
cloud/identity.py
-----------------
Firebase Auth identity record for a user.
"""

import asyncio

from firebase_admin import auth

from utils.logger import get_logger

logger = get_logger(__name__)


class FirebaseIdentityStore:
    """Deletes Firebase Auth users; a missing user counts as already deleted."""

    async def delete_identity(self, user_id: str) -> None:
        try:
            await asyncio.to_thread(auth.delete_user, str(user_id))
            logger.info(f"Deleted Firebase identity {user_id}")
        except auth.UserNotFoundError:
            logger.info(f"Firebase identity {user_id} does not exist; nothing to delete")
