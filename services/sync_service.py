"""
services/sync_service.py
------------------------
Offline-first synchronization between the local bill store and the
remote document store.

Upload path (dirty flags):
    1. Local mutations mark bills dirty and call ``schedule_debounced_sync``.
    2. After the debounce window (default 30s) with no new mutations, every
       dirty bill is uploaded in atomic batches of at most 400 writes.
    3. Each committed batch is finalized locally: tombstones are removed,
       everything else goes back to clean (version untouched).

Download path (incremental pull):
    Remote documents modified after the stored checkpoint are merged by
    version. The higher version wins the whole record; ties keep the local
    copy. There is no field-level merge.

At most one upload or download runs at a time. Transient failures never
propagate: they set ``state = failed`` and ``last_error`` and are retried on
the next trigger, with per-bill backoff tracked in the retry queue.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from models.bill import Bill, utc_now
from models.sync import RemoteWrite, SyncAction, SyncQueueItem, SyncResult, SyncState
from utils.chunking import chunked
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 30.0
DEFAULT_MAX_BATCH_SIZE = 400
DEFAULT_STARTUP_DELAY_SECONDS = 5.0
DEFAULT_RESUME_DELAY_SECONDS = 2.0

_USE_CHECKPOINT = object()

RemoteChangeListener = Callable[[list[Bill]], Awaitable[None]]


class SyncService:
    """
    Sync engine for one user's bills.

    Args:
        store: Local store bound to the user (see ``BillRepository``).
        remote: Remote store adapter (see ``FirestoreBillStore``).
        connectivity: Object with an async ``is_online()``.
        queue: Optional retry queue (see ``SyncQueueRepository``).
        debounce_seconds: Quiet period before a scheduled upload runs.
        max_batch_size: Remote batch write limit.
        startup_delay: Delay before resuming interrupted work at startup.
        resume_delay: Settle delay after the app comes back to the foreground.
        clock: Returns the current UTC instant. Injectable for tests.
    """

    def __init__(
        self,
        store,
        remote,
        connectivity,
        queue=None,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        startup_delay: float = DEFAULT_STARTUP_DELAY_SECONDS,
        resume_delay: float = DEFAULT_RESUME_DELAY_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be positive")
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.queue = queue
        self.debounce_seconds = debounce_seconds
        self.max_batch_size = max_batch_size
        self.startup_delay = startup_delay
        self.resume_delay = resume_delay
        self._clock = clock

        self._user_id: Optional[str] = None
        self._is_syncing = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[RemoteChangeListener] = []

        self.state = SyncState.IDLE
        self.last_error: Optional[str] = None
        self.last_result: Optional[SyncResult] = None

    # ── STATE ─────────────────────────────────────────────

    def set_user_id(self, user_id: Optional[str]) -> None:
        """Bind (or with None, unbind) the user whose bills are synced."""
        self._user_id = str(user_id) if user_id is not None else None
        if self._user_id is None:
            self.cancel_scheduled_sync()

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def can_sync(self) -> bool:
        return self._user_id is not None

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def has_scheduled_sync(self) -> bool:
        return self._timer is not None

    @property
    def pending_count(self) -> int:
        """Bills with local changes awaiting upload, recomputed from the store."""
        if not self.can_sync:
            return 0
        return len(self.store.get_dirty())

    @property
    def last_sync_time(self) -> Optional[datetime]:
        if not self.can_sync:
            return None
        return self.store.get_last_sync_time()

    def add_remote_change_listener(self, listener: RemoteChangeListener) -> None:
        """Register a coroutine called with the bills a pull changed locally."""
        self._listeners.append(listener)

    # ── SCHEDULING ────────────────────────────────────────

    def mark_dirty(self, bill: Bill) -> None:
        """Note a local mutation of ``bill`` and (re)start the debounce timer."""
        if self.queue is not None and self.can_sync:
            try:
                self.queue.enqueue(bill.id, SyncAction.for_status(bill.sync_status))
            except Exception as e:
                # Advisory only: the bill's own sync status still drives the upload.
                logger.warning(f"Could not queue bill {bill.id} for sync: {e}")
        self.schedule_debounced_sync()

    def schedule_debounced_sync(self) -> None:
        """(Re)start the debounce timer; only the last call in a burst uploads."""
        self.schedule_sync(self.debounce_seconds)

    def schedule_sync(self, delay: float) -> None:
        """Arm the single sync timer to fire after ``delay`` seconds, replacing any pending one."""
        if not self.can_sync:
            return
        self.cancel_scheduled_sync()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)
        logger.debug(f"Sync for user {self._user_id} scheduled in {delay:.1f}s")

    def cancel_scheduled_sync(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.execute_batch_sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ── TRIGGERS ──────────────────────────────────────────

    async def sync_now(self) -> SyncResult:
        """User-initiated sync: skip the debounce and any backoff, upload then pull."""
        self.cancel_scheduled_sync()
        return await self.full_sync(respect_backoff=False)

    async def on_background(self) -> SyncResult:
        """App backgrounding or terminating: flush immediately."""
        self.cancel_scheduled_sync()
        return await self.execute_batch_sync(respect_backoff=False)

    def on_resume(self) -> None:
        """App back in the foreground: sync shortly if anything is still dirty."""
        if self.can_sync and self.pending_count:
            self.schedule_sync(self.resume_delay)

    def resume_pending_sync(self) -> None:
        """Startup: pick up work a crash or kill interrupted."""
        if self.can_sync and self.pending_count:
            logger.info(f"Resuming {self.pending_count} unsynced bill(s) for user {self._user_id}")
            self.schedule_sync(self.startup_delay)

    async def full_sync(self, respect_backoff: bool = True) -> SyncResult:
        """Upload pending changes, then pull remote changes since the pre-upload checkpoint."""
        checkpoint = self.last_sync_time
        upload = await self.execute_batch_sync(respect_backoff=respect_backoff)
        pull = await self.download_bills(since=checkpoint)
        result = SyncResult(
            success=upload.success and pull.success,
            bills_synced=upload.bills_synced,
            bills_pulled=pull.bills_pulled,
            deferred=upload.deferred,
            error=upload.error or pull.error,
        )
        self.last_result = result
        logger.info(f"Full sync for user {self._user_id}: {result}")
        return result

    # ── UPLOAD ────────────────────────────────────────────

    async def execute_batch_sync(self, respect_backoff: bool = True) -> SyncResult:
        """
        Upload every dirty bill in chunks of ``max_batch_size``.

        Committed chunks stay committed if a later chunk fails; the rest stay
        dirty, so running this again is always safe.
        """
        if not self.can_sync:
            return SyncResult(success=False, error="No user is signed in")
        if self._is_syncing:
            return SyncResult(success=False, error="Sync already in progress")

        self._is_syncing = True
        try:
            if not await self.connectivity.is_online():
                logger.info("Skipping upload: no internet connection")
                return SyncResult(success=False, error="No internet connection")
            result = await self._upload(respect_backoff)
            self.last_result = result
            return result
        finally:
            self._is_syncing = False

    async def _upload(self, respect_backoff: bool) -> SyncResult:
        previous_state = self.state
        self.state = SyncState.SYNCING
        self.last_error = None
        user_id = self._user_id

        pending: list[Bill] = []
        synced = 0
        try:
            dirty = self.store.get_dirty()
            if not dirty:
                self.state = SyncState.SUCCESS
                return SyncResult(success=True)

            queue_items = self._load_queue()
            if respect_backoff:
                now = self._clock()
                pending = [b for b in dirty if b.id not in queue_items or queue_items[b.id].can_retry_now(now)]
            else:
                pending = list(dirty)
            deferred = len(dirty) - len(pending)
            if not pending:
                self.state = previous_state
                logger.info(f"All {deferred} dirty bill(s) are waiting out their retry backoff")
                return SyncResult(success=False, deferred=deferred, error="Waiting for retry backoff")

            chunks = chunked(pending, self.max_batch_size)
            logger.info(f"Uploading {len(pending)} bill(s) for user {user_id} in {len(chunks)} batch(es)")
            for chunk in chunks:
                ops = [RemoteWrite.for_bill(bill) for bill in chunk]
                await self.remote.batch_write(user_id, ops, max_batch_size=self.max_batch_size)
                self._finalize_chunk(chunk)
                synced += len(chunk)
                self._forget(chunk)

            self.store.set_last_sync_time(self._clock())
            self.state = SyncState.SUCCESS
            logger.info(f"Upload complete for user {user_id}: {synced} bill(s)")
            return SyncResult(success=True, bills_synced=synced, deferred=deferred)
        except Exception as e:
            error = str(e) or type(e).__name__
            self.state = SyncState.FAILED
            self.last_error = error
            logger.warning(f"Upload failed for user {user_id} after {synced} bill(s): {error}")
            self._record_failures(pending[synced:], error)
            return SyncResult(success=False, bills_synced=synced, error=error)

    def _finalize_chunk(self, uploaded: list[Bill]) -> None:
        """Resolve tombstones and mark bills clean, unless they changed mid-upload."""
        for bill in uploaded:
            current = self.store.get(bill.id)
            if current is None:
                continue
            if current.version != bill.version:
                logger.debug(f"Bill {bill.id} changed during upload (v{bill.version} -> v{current.version}); still dirty")
                continue
            if bill.is_deleted:
                self.store.delete(bill.id)
            else:
                current.mark_as_clean()
                self.store.update(current)

    # ── RETRY QUEUE ───────────────────────────────────────

    def _load_queue(self) -> dict[str, SyncQueueItem]:
        if self.queue is None:
            return {}
        try:
            return self.queue.get_all()
        except Exception as e:
            logger.warning(f"Retry queue unavailable, ignoring backoff: {e}")
            return {}

    def _forget(self, bills: list[Bill]) -> None:
        if self.queue is None:
            return
        try:
            self.queue.remove([b.id for b in bills])
        except Exception as e:
            logger.warning(f"Could not clear retry entries: {e}")

    def _record_failures(self, bills: list[Bill], error: str) -> None:
        """Bump retry counters and arm a retry at the earliest backoff still allowed."""
        if self.queue is None or not bills:
            return
        now = self._clock()
        known = self._load_queue()
        retry_in: list[int] = []
        try:
            for bill in bills:
                item = known.get(bill.id) or SyncQueueItem(bill.id, SyncAction.for_status(bill.sync_status))
                item.record_failure(error, now)
                self.queue.save(item)
                if item.should_retry:
                    retry_in.append(item.backoff_seconds)
        except Exception as e:
            logger.warning(f"Could not record sync failure in retry queue: {e}")
            return
        if retry_in:
            self.schedule_sync(min(retry_in))
        else:
            logger.error(f"{len(bills)} bill(s) exhausted automatic retries; waiting for a manual sync")

    # ── DOWNLOAD ──────────────────────────────────────────

    async def download_bills(self, full_sync: bool = False, since=_USE_CHECKPOINT) -> SyncResult:
        """
        Pull remote changes and merge them by version.

        Args:
            full_sync: Ignore the checkpoint and fetch every remote bill.
            since: Explicit lower bound instead of the stored checkpoint.
        """
        if not self.can_sync:
            return SyncResult(success=False, error="No user is signed in")
        if self._is_syncing:
            return SyncResult(success=False, error="Sync already in progress")

        self._is_syncing = True
        try:
            if not await self.connectivity.is_online():
                logger.info("Skipping download: no internet connection")
                return SyncResult(success=False, error="No internet connection")
            if full_sync:
                checkpoint = None
            elif since is _USE_CHECKPOINT:
                checkpoint = self.store.get_last_sync_time()
            else:
                checkpoint = since
            return await self._pull(checkpoint)
        finally:
            self._is_syncing = False

    async def _pull(self, checkpoint: Optional[datetime]) -> SyncResult:
        user_id = self._user_id
        started = self._clock()
        self.state = SyncState.SYNCING
        self.last_error = None
        changed: list[Bill] = []
        try:
            documents = await self.remote.query(user_id, modified_after=checkpoint)
            for bill_id, data in documents:
                try:
                    remote_bill = Bill.from_remote(bill_id, data)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed remote bill {bill_id}: {e}")
                    continue
                if self._merge(remote_bill):
                    changed.append(remote_bill)
            self.store.set_last_sync_time(started)
            self.state = SyncState.SUCCESS
        except Exception as e:
            error = str(e) or type(e).__name__
            self.state = SyncState.FAILED
            self.last_error = error
            logger.warning(f"Download failed for user {user_id} after {len(changed)} merged bill(s): {error}")
            return SyncResult(success=False, bills_pulled=len(changed), error=error)
        finally:
            # A retry never re-reports bills merged before the failure
            if changed:
                await self._notify_listeners(changed)

        logger.info(f"Pulled {len(changed)} changed bill(s) of {len(documents)} for user {user_id}")
        return SyncResult(success=True, bills_pulled=len(changed))

    def _merge(self, remote_bill: Bill) -> bool:
        """Last-write-wins by version. Returns True when the local copy changed."""
        local = self.store.get(remote_bill.id)
        if local is None:
            self.store.insert(remote_bill)
            return True
        if remote_bill.version > local.version:
            logger.debug(f"Remote wins for {remote_bill.id}: v{remote_bill.version} > v{local.version}")
            self.store.update(remote_bill)
            return True
        logger.debug(f"Local kept for {remote_bill.id}: v{local.version} >= v{remote_bill.version}")
        return False

    async def _notify_listeners(self, bills: list[Bill]) -> None:
        for listener in self._listeners:
            try:
                await listener(bills)
            except Exception as e:
                logger.error(f"Remote change listener failed: {e}")

    # ── CLEANUP ───────────────────────────────────────────

    async def close(self) -> None:
        """Cancel the timer and wait for any upload it already started."""
        self.cancel_scheduled_sync()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
