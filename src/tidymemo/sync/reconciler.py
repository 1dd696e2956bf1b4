"""Sync reconciler: owns the in-memory Document and keeps both stores current."""

import asyncio
import enum
from collections.abc import Callable

from loguru import logger

from tidymemo.core import topics
from tidymemo.models.document import Document, Topic, bootstrap_document, now_ms
from tidymemo.models.identity import Identity
from tidymemo.protocols import LocalCacheProtocol, PersistenceSink, RemoteStoreProtocol
from tidymemo.session import Session
from tidymemo.sync.sinks import CompositeSink, LoadStatus, LocalSink, RemoteSink


class SyncState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


def _has_topics(doc: Document | None) -> bool:
    return doc is not None and not doc.is_empty


class Reconciler:
    """Load a Document once per session, then write it through on every mutation.

    Signed in, the remote store is the authority at load time; otherwise the
    local cache is. Either way every mutation is saved to the local cache
    synchronously, and, when signed in, pushed to the remote store in the
    background.

    A Document bootstrapped during ``load()`` is saved to the local cache right
    away. Mutations made before ``load()`` completes are applied in memory only.
    """

    def __init__(
        self,
        local: LocalCacheProtocol,
        remote: RemoteStoreProtocol | None = None,
        identity: Identity | None = None,
    ) -> None:
        if identity is not None and remote is None:
            msg = "A remote store is required when an identity is given"
            raise ValueError(msg)
        self.local = local
        self.remote = remote
        self.identity = identity
        self.state = SyncState.UNINITIALIZED
        self.document = Document()
        self.remote_suspended = False
        self._version = 0
        self._bootstrapped = False
        self._remote_sink: RemoteSink | None = None
        self._sink: PersistenceSink = LocalSink(local)

    @property
    def ready(self) -> bool:
        return self.state is SyncState.READY

    @property
    def saving(self) -> bool:
        """True while a remote write is still in flight."""
        return self._remote_sink is not None and self._remote_sink.pending > 0

    async def load(self) -> Document:
        """Run the load protocol and transition to READY."""
        if self.state is not SyncState.UNINITIALIZED:
            msg = f"load() called twice (state {self.state.value})"
            raise RuntimeError(msg)
        self.state = SyncState.LOADING
        self.remote_suspended = False
        self._remote_sink = None
        self._bootstrapped = False

        if self.identity is not None and self.remote is not None:
            self.document = await self._load_signed_in(RemoteSink(self.remote, self.identity))
        else:
            self.document = self._load_anonymous()

        local_sink = LocalSink(self.local)
        sinks: list[PersistenceSink] = [local_sink]
        if self._remote_sink is not None and not self.remote_suspended:
            sinks.append(self._remote_sink)
        self._sink = CompositeSink(sinks)
        self.state = SyncState.READY
        if self._bootstrapped:
            # Keep the fresh topic id stable across sessions.
            self._version += 1
            local_sink.save(self.document.serialize(), version=self._version, updated_at=now_ms())
        logger.debug("Document ready: {} topic(s)", len(self.document.topics))
        return self.document

    async def _load_signed_in(self, sink: RemoteSink) -> Document:
        self._remote_sink = sink
        result = await sink.load()
        if result.status is LoadStatus.FOUND:
            if _has_topics(result.document):
                return result.document  # type: ignore[return-value]
            logger.info("Remote document has no topics, starting a fresh one")
            doc = self._bootstrap()
            # The record exists already, so it is replaced rather than inserted.
            self._version += 1
            sink.save(doc.serialize(), version=self._version, updated_at=now_ms())
            return doc
        if result.status is LoadStatus.ABSENT:
            doc = self._bootstrap()
            await sink.create(doc.serialize())
            return doc

        # The remote may still hold the user's data: never provision or
        # overwrite it from a session that could not read it.
        self.remote_suspended = True
        logger.warning("Remote store unreachable, working from the local cache this session")
        cached = self.local.load_local()
        return cached if _has_topics(cached) else self._bootstrap()  # type: ignore[return-value]

    def _load_anonymous(self) -> Document:
        cached = self.local.load_local()
        if _has_topics(cached):
            return cached  # type: ignore[return-value]
        return self._bootstrap()

    def _bootstrap(self) -> Document:
        self._bootstrapped = True
        return bootstrap_document()

    async def switch_identity(self, identity: Identity | None) -> None:
        """React to sign-in / sign-out.

        Signing out keeps the current Document and the local cache; remote
        writes stop. Signing in (or switching accounts) reloads from the remote.
        """
        if identity == self.identity:
            return
        await self.flush()
        self.identity = identity
        if identity is None:
            self._remote_sink = None
            self._sink = CompositeSink([LocalSink(self.local)])
            logger.info("Signed out, keeping the local copy")
            return
        if self.remote is None:
            msg = "A remote store is required when an identity is given"
            raise ValueError(msg)
        self.state = SyncState.UNINITIALIZED
        await self.load()

    async def flush(self) -> None:
        """Wait for all in-flight remote writes."""
        if self._remote_sink is not None:
            await self._remote_sink.flush()

    def _write_through(self) -> None:
        if not self.ready:
            return
        self._version += 1
        self._sink.save(self.document.serialize(), version=self._version, updated_at=now_ms())

    def _commit(self, changed: bool) -> bool:
        if changed:
            self._write_through()
        return changed

    # --- Mutations ---

    def create_topic(self, title: str = topics.NEW_TOPIC_TITLE) -> Topic:
        topic = topics.create_topic(self.document, title=title)
        self._write_through()
        return topic

    def delete_topic(self, topic_id: str) -> bool:
        return self._commit(topics.delete_topic(self.document, topic_id))

    def rename_topic(self, topic_id: str, title: str) -> bool:
        return self._commit(topics.rename_topic(self.document, topic_id, title))

    def set_content(self, topic_id: str, text: str) -> bool:
        return self._commit(topics.set_content(self.document, topic_id, text))

    def set_line_text(self, topic_id: str, index: int, text: str) -> bool:
        return self._commit(topics.set_line_text(self.document, topic_id, index, text))

    def set_checklist_mode(self, topic_id: str, enabled: bool) -> bool:
        return self._commit(topics.set_checklist_mode(self.document, topic_id, enabled))

    def toggle_checklist_mode(self, topic_id: str) -> bool:
        return self._commit(topics.toggle_checklist_mode(self.document, topic_id))

    def toggle_line_check(self, topic_id: str, index: int) -> bool:
        return self._commit(topics.toggle_line_check(self.document, topic_id, index))


def follow_session(reconciler: Reconciler, session: Session) -> Callable[[], None]:
    """Switch the reconciler's identity whenever the session signs in or out.

    Must be called from inside the running event loop. Returns the unsubscribe
    function.
    """
    loop = asyncio.get_running_loop()
    tasks: set[asyncio.Task[None]] = set()

    def on_change(identity: Identity | None) -> None:
        task = loop.create_task(reconciler.switch_identity(identity))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    return session.subscribe(on_change)
