"""Protocols for dependency injection in the sync layer."""

from typing import Protocol, runtime_checkable

from tidymemo.models.document import Document
from tidymemo.models.identity import Identity


@runtime_checkable
class LocalCacheProtocol(Protocol):
    """Protocol for the device-scoped document cache."""

    def save_raw(self, payload: str) -> None:
        """Store a serialized Document. Must not raise."""
        ...

    def load_local(self) -> Document | None:
        """Return the cached Document, or None if absent or unreadable."""
        ...


@runtime_checkable
class RemoteStoreProtocol(Protocol):
    """Protocol for account-scoped remote document stores."""

    def load_remote(self, identity: Identity) -> Document | None:
        """Fetch the identity's Document, None if no record exists."""
        ...

    def create_remote(self, identity: Identity, payload: str) -> None:
        """Insert the first record for an identity."""
        ...

    def update_remote(self, identity: Identity, payload: str, updated_at: int) -> None:
        """Replace the identity's record."""
        ...


@runtime_checkable
class PersistenceSink(Protocol):
    """A destination for Document snapshots after each mutation."""

    def save(self, payload: str, *, version: int, updated_at: int) -> None:
        """Persist a serialized snapshot. Must not raise."""
        ...
