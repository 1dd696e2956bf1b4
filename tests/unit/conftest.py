"""Shared test fixtures."""

import asyncio
import sqlite3
from collections.abc import Iterator

import pytest

from tidymemo.models.document import Document
from tidymemo.storage.local import LocalCache
from tidymemo.sync.reconciler import Reconciler
from tests.unit.fakes import FakeLocalCache, FakeRemoteStore, make_document


@pytest.fixture
def document() -> Document:
    return make_document()


@pytest.fixture
def local_cache() -> FakeLocalCache:
    return FakeLocalCache()


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def sqlite_cache() -> Iterator[LocalCache]:
    """A real LocalCache on an in-memory database."""
    cache = LocalCache(sqlite3.connect(":memory:"))
    yield cache
    cache.close()


@pytest.fixture
def reconciler(local_cache: FakeLocalCache) -> Reconciler:
    """A signed-out Reconciler, loaded from a cache holding the two-topic document."""
    local_cache.raw = make_document().serialize()
    reconciler = Reconciler(local_cache)
    asyncio.run(reconciler.load())
    return reconciler
