"""Local-first notes with checklists and remote sync."""

__version__ = "0.1.0"

from tidymemo.models.document import Document, Topic  # noqa: E402
from tidymemo.protocols import LocalCacheProtocol, PersistenceSink, RemoteStoreProtocol  # noqa: E402
from tidymemo.storage.local import LocalCache  # noqa: E402
from tidymemo.storage.remote import RemoteStore, RemoteStoreError  # noqa: E402
from tidymemo.sync.reconciler import Reconciler  # noqa: E402

__all__ = [
    "Document",
    "LocalCache",
    "LocalCacheProtocol",
    "PersistenceSink",
    "Reconciler",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteStoreProtocol",
    "Topic",
]
