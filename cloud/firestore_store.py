"""
cloud/firestore_store.py
------------------------
Remote store adapter: a per-user Firestore collection of bill documents.

Layout:
    users/{user_id}                 user document (cloud settings)
    users/{user_id}/bills/{bill_id} one document per bill

Firestore's client is blocking, so every call runs in a worker thread to
keep the bot's event loop responsive.
"""

import asyncio
from datetime import datetime
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from config import FIRESTORE_BILLS_COLLECTION, FIRESTORE_USERS_COLLECTION
from models.sync import RemoteWrite
from utils.chunking import chunked
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_BATCH_SIZE = 400


def init_firebase(credentials_path: str) -> firebase_admin.App:
    """
    Initialize the default Firebase app once.

    Raises:
        ValueError: If no credentials file is configured.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if not credentials_path:
        raise ValueError("FIREBASE_CREDENTIALS_PATH is not set.")
    app = firebase_admin.initialize_app(credentials.Certificate(credentials_path))
    logger.info("Firebase app initialized.")
    return app


class FirestoreBillStore:
    """
    Remote bill collection for every user.

    Args:
        client: A ``google.cloud.firestore.Client``; defaults to the
            firebase-admin client of the default app.
    """

    def __init__(self, client=None):
        self._client = client or firestore.client()

    def _user_doc(self, user_id: str):
        return self._client.collection(FIRESTORE_USERS_COLLECTION).document(str(user_id))

    def _bills(self, user_id: str):
        return self._user_doc(user_id).collection(FIRESTORE_BILLS_COLLECTION)

    # ── WRITE ─────────────────────────────────────────────

    async def batch_write(self, user_id: str, ops: list[RemoteWrite],
                          max_batch_size: int = MAX_BATCH_SIZE) -> None:
        """
        Commit ``ops`` as one atomic batch per chunk.

        Upserts merge into existing documents; deletes are by id. Callers that
        need per-chunk bookkeeping pass at most ``max_batch_size`` operations.
        """
        for chunk in chunked(ops, max_batch_size):
            await asyncio.to_thread(self._commit_chunk, user_id, chunk)

    def _commit_chunk(self, user_id: str, ops: list[RemoteWrite]) -> None:
        batch = self._client.batch()
        bills = self._bills(user_id)
        for op in ops:
            ref = bills.document(op.bill_id)
            if op.is_delete:
                batch.delete(ref)
            else:
                batch.set(ref, op.fields, merge=True)
        batch.commit()
        logger.debug(f"Committed {len(ops)} remote operation(s) for user {user_id}")

    async def delete_all(self, user_id: str, max_batch_size: int = MAX_BATCH_SIZE) -> int:
        """Delete every bill document and then the user document. Returns bills removed."""
        return await asyncio.to_thread(self._delete_all, user_id, max_batch_size)

    def _delete_all(self, user_id: str, max_batch_size: int) -> int:
        refs = [doc.reference for doc in self._bills(user_id).stream()]
        for chunk in chunked(refs, max_batch_size):
            batch = self._client.batch()
            for ref in chunk:
                batch.delete(ref)
            batch.commit()
        self._user_doc(user_id).delete()
        logger.info(f"Deleted user document and {len(refs)} bill(s) for {user_id}")
        return len(refs)

    # ── READ ──────────────────────────────────────────────

    async def get(self, user_id: str, bill_id: str) -> Optional[dict]:
        snapshot = await asyncio.to_thread(self._bills(user_id).document(bill_id).get)
        return snapshot.to_dict() if snapshot.exists else None

    async def query(self, user_id: str, modified_after: Optional[datetime] = None) -> list[tuple[str, dict]]:
        """
        Fetch ``(bill_id, document)`` pairs, optionally only those whose
        ``lastModified`` is strictly after ``modified_after``.
        """
        return await asyncio.to_thread(self._query, user_id, modified_after)

    def _query(self, user_id: str, modified_after: Optional[datetime]) -> list[tuple[str, dict]]:
        query = self._bills(user_id)
        if modified_after is not None:
            query = query.where(filter=FieldFilter("lastModified", ">", modified_after))
        return [(doc.id, doc.to_dict()) for doc in query.stream()]
