"""Persistence sinks: where Document snapshots go after each mutation."""

import asyncio
import enum
from dataclasses import dataclass

from loguru import logger

from tidymemo.models.document import Document
from tidymemo.models.identity import Identity
from tidymemo.protocols import LocalCacheProtocol, PersistenceSink, RemoteStoreProtocol
from tidymemo.storage.remote import RemoteStoreError


class LoadStatus(enum.Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteLoad:
    """Outcome of a remote load. ``document`` is set only when FOUND."""

    status: LoadStatus
    document: Document | None = None


class LocalSink:
    """Synchronous write-through to the local cache."""

    def __init__(self, cache: LocalCacheProtocol) -> None:
        self.cache = cache

    def save(self, payload: str, *, version: int, updated_at: int) -> None:
        self.cache.save_raw(payload)


class RemoteSink:
    """Fire-and-forget write-through to the remote store.

    Each save is scheduled as a task that runs the blocking store call on a
    worker thread. Snapshots carry a monotonic version: sends happen one at a
    time, and a snapshot is dropped when a newer one has already been submitted,
    since every snapshot is the whole Document.
    """

    def __init__(self, store: RemoteStoreProtocol, identity: Identity) -> None:
        self.store = store
        self.identity = identity
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._latest_submitted = 0
        self._latest_sent = 0

    async def load(self) -> RemoteLoad:
        try:
            doc = await asyncio.to_thread(self.store.load_remote, self.identity)
        except RemoteStoreError:
            logger.exception("Failed to load remote document for {!r}", self.identity)
            return RemoteLoad(LoadStatus.FAILED)
        if doc is None:
            return RemoteLoad(LoadStatus.ABSENT)
        return RemoteLoad(LoadStatus.FOUND, doc)

    async def create(self, payload: str) -> bool:
        """Provision the identity's first record. Returns False on failure."""
        try:
            await asyncio.to_thread(self.store.create_remote, self.identity, payload)
        except RemoteStoreError:
            logger.exception("Failed to create remote document for {!r}", self.identity)
            return False
        logger.info("Created remote document for {!r}", self.identity)
        return True

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def save(self, payload: str, *, version: int, updated_at: int) -> None:
        self._latest_submitted = max(self._latest_submitted, version)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called outside an event loop: send inline.
            self._send(payload, version=version, updated_at=updated_at)
            return
        task = loop.create_task(self._push(payload, version=version, updated_at=updated_at))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _push(self, payload: str, *, version: int, updated_at: int) -> None:
        async with self._lock:
            if version < self._latest_submitted or version <= self._latest_sent:
                logger.debug("Skipping remote snapshot v{}, v{} is newer",
                             version, self._latest_submitted)
                return
            await asyncio.to_thread(self._send, payload, version=version, updated_at=updated_at)

    def _send(self, payload: str, *, version: int, updated_at: int) -> None:
        try:
            self.store.update_remote(self.identity, payload, updated_at)
        except Exception:
            logger.exception("Failed to update remote document v{}", version)
            return
        self._latest_sent = max(self._latest_sent, version)
        logger.debug("Remote document updated to v{}", version)

    async def flush(self) -> None:
        """Wait until every scheduled save has finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)


class CompositeSink:
    """Fan a snapshot out to several sinks; one failing sink never stops the others."""

    def __init__(self, sinks: list[PersistenceSink]) -> None:
        self.sinks = sinks

    def save(self, payload: str, *, version: int, updated_at: int) -> None:
        for sink in self.sinks:
            try:
                sink.save(payload, version=version, updated_at=updated_at)
            except Exception:
                logger.exception("Sink {} failed to save v{}", type(sink).__name__, version)
