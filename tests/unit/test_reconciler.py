"""Tests for the sync reconciler: load protocol and write-through."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from tidymemo.core import topics
from tidymemo.models.document import Document
from tidymemo.models.identity import Identity
from tidymemo.session import Session
from tidymemo.sync.reconciler import Reconciler, SyncState, follow_session
from tests.unit.fakes import ALICE, FakeLocalCache, FakeRemoteStore, make_document


def _loaded(
    local: FakeLocalCache,
    remote: FakeRemoteStore | None = None,
    identity: Identity | None = None,
    then: Callable[[Reconciler], Awaitable[None]] | None = None,
) -> Reconciler:
    """Load a reconciler, optionally run more steps inside the same event loop."""
    reconciler = Reconciler(local, remote, identity)

    async def run() -> None:
        await reconciler.load()
        if then is not None:
            await then(reconciler)
        await reconciler.flush()

    asyncio.run(run())
    return reconciler


def _assert_bootstrapped(doc: Document) -> None:
    assert len(doc.topics) == 1
    assert doc.topics[0].title == "Untitled"
    assert topics.get_content(doc, doc.topics[0].id) == ""


# --- Load protocol, signed out ---


def test_anonymous_load_adopts_local_document(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    reconciler = _loaded(local_cache)

    assert reconciler.state is SyncState.READY
    assert reconciler.document == make_document()


def test_anonymous_load_bootstraps_when_nothing_cached(local_cache: FakeLocalCache) -> None:
    reconciler = _loaded(local_cache)

    _assert_bootstrapped(reconciler.document)


def test_anonymous_load_bootstraps_on_corrupt_cache() -> None:
    reconciler = _loaded(FakeLocalCache("{corrupt"))

    _assert_bootstrapped(reconciler.document)


def test_anonymous_load_bootstraps_on_empty_document() -> None:
    reconciler = _loaded(FakeLocalCache(Document().serialize()))

    _assert_bootstrapped(reconciler.document)


def test_anonymous_load_never_touches_remote(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    _loaded(local_cache, remote_store, None)

    assert remote_store.calls == []


def test_loading_a_cached_document_writes_nothing(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    _loaded(local_cache)

    assert local_cache.saves == []


def test_bootstrapped_document_is_saved_once_and_reloaded(local_cache: FakeLocalCache) -> None:
    first = _loaded(local_cache)
    second = _loaded(local_cache)

    assert local_cache.saves == [first.document.serialize()]
    assert second.document.topics[0].id == first.document.topics[0].id


def test_remote_failure_bootstrap_is_saved_locally(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.fail_load = True

    reconciler = _loaded(local_cache, remote_store, ALICE)

    assert local_cache.raw == reconciler.document.serialize()
    assert remote_store.methods() == ["load"]


def test_load_twice_raises(local_cache: FakeLocalCache) -> None:
    reconciler = _loaded(local_cache)

    with pytest.raises(RuntimeError, match="called twice"):
        asyncio.run(reconciler.load())


def test_identity_without_remote_is_rejected(local_cache: FakeLocalCache) -> None:
    with pytest.raises(ValueError, match="remote store is required"):
        Reconciler(local_cache, None, ALICE)


# --- Load protocol, signed in ---


def test_signed_in_load_adopts_remote_document(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()
    local_cache.raw = Document().serialize()

    reconciler = _loaded(local_cache, remote_store, ALICE)

    assert reconciler.document == make_document()
    assert remote_store.methods() == ["load"]


def test_signed_in_load_ignores_local_cache(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    local_cache.raw = make_document().serialize()

    reconciler = _loaded(local_cache, remote_store, ALICE)

    _assert_bootstrapped(reconciler.document)


def test_first_sign_in_provisions_remote_record(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    reconciler = _loaded(local_cache, remote_store, ALICE)

    _assert_bootstrapped(reconciler.document)
    assert remote_store.methods() == ["load", "create"]
    assert remote_store.records[ALICE.user_id] == reconciler.document.serialize()


def test_remote_document_without_topics_is_replaced(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = Document().serialize()

    reconciler = _loaded(local_cache, remote_store, ALICE)

    _assert_bootstrapped(reconciler.document)
    assert remote_store.methods() == ["load", "update"]
    assert remote_store.records[ALICE.user_id] == reconciler.document.serialize()


def test_remote_failure_falls_back_to_local_without_provisioning(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.fail_load = True
    local_cache.raw = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        r.set_content("t-notes", "offline edit")

    reconciler = _loaded(local_cache, remote_store, ALICE, then=edit)

    assert reconciler.remote_suspended is True
    assert topics.get_content(reconciler.document, "t-notes") == "offline edit"
    assert remote_store.methods() == ["load"]
    assert ALICE.user_id not in remote_store.records
    assert local_cache.raw == reconciler.document.serialize()


def test_remote_failure_without_cache_bootstraps(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.fail_load = True

    reconciler = _loaded(local_cache, remote_store, ALICE)

    _assert_bootstrapped(reconciler.document)
    assert "create" not in remote_store.methods()


# --- Write-through ---


def test_mutation_before_ready_is_not_written(local_cache: FakeLocalCache) -> None:
    reconciler = Reconciler(local_cache)
    reconciler.document = make_document()

    reconciler.set_content("t-notes", "early")

    assert local_cache.saves == []


def test_every_mutation_writes_local_cache(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        r.rename_topic("t-notes", "Journal")
        r.set_content("t-notes", "body")
        r.set_checklist_mode("t-notes", True)
        r.toggle_line_check("t-notes", 0)
        r.create_topic()

    reconciler = _loaded(local_cache, then=edit)

    assert len(local_cache.saves) == 5
    assert local_cache.saves[-1] == reconciler.document.serialize()


def test_unknown_topic_mutation_writes_nothing(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        r.rename_topic("missing", "x")
        r.delete_topic("missing")
        r.toggle_line_check("missing", 0)

    _loaded(local_cache, then=edit)

    assert local_cache.saves == []


def test_out_of_range_toggle_writes_nothing(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        assert r.toggle_line_check("t-groceries", 3) is False

    _loaded(local_cache, then=edit)

    assert local_cache.saves == []


def test_signed_in_mutation_sends_same_snapshot_to_both_stores(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        r.toggle_line_check("t-groceries", 0)

    _loaded(local_cache, remote_store, ALICE, then=edit)

    assert remote_store.updates == local_cache.saves
    assert len(remote_store.updates) == 1


def test_signed_in_remote_ends_with_latest_snapshot(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        for i in range(10):
            r.set_content("t-notes", f"keystroke {i}")

    reconciler = _loaded(local_cache, remote_store, ALICE, then=edit)

    assert remote_store.records[ALICE.user_id] == reconciler.document.serialize()
    assert set(remote_store.updates) <= set(local_cache.saves)


def test_remote_update_failure_keeps_local_copy(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()
    remote_store.fail_update = True

    async def edit(r: Reconciler) -> None:
        r.set_content("t-notes", "unsynced")

    reconciler = _loaded(local_cache, remote_store, ALICE, then=edit)

    assert local_cache.raw == reconciler.document.serialize()
    assert remote_store.records[ALICE.user_id] == make_document().serialize()


def test_saving_is_true_while_remote_write_pending(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()
    seen: list[bool] = []

    async def edit(r: Reconciler) -> None:
        r.set_content("t-notes", "x")
        seen.append(r.saving)
        await r.flush()
        seen.append(r.saving)

    _loaded(local_cache, remote_store, ALICE, then=edit)

    assert seen == [True, False]


def test_delete_is_written_through(local_cache: FakeLocalCache) -> None:
    local_cache.raw = make_document().serialize()

    async def edit(r: Reconciler) -> None:
        assert r.delete_topic("t-groceries") is True
        assert r.delete_topic("t-groceries") is False

    _loaded(local_cache, then=edit)

    assert len(local_cache.saves) == 1
    saved = local_cache.load_local()
    assert saved is not None
    assert [t.id for t in saved.topics] == ["t-notes"]
    assert "t-groceries" not in saved.checks_by_topic


# --- Identity changes ---


def test_sign_out_keeps_document_and_stops_remote_writes(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()

    async def steps(r: Reconciler) -> None:
        await r.switch_identity(None)
        r.set_content("t-notes", "after sign-out")

    reconciler = _loaded(local_cache, remote_store, ALICE, then=steps)

    assert reconciler.identity is None
    assert topics.get_content(reconciler.document, "t-notes") == "after sign-out"
    assert "update" not in remote_store.methods()
    assert local_cache.raw == reconciler.document.serialize()


def test_sign_in_reloads_from_remote(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()

    async def steps(r: Reconciler) -> None:
        await r.switch_identity(ALICE)

    reconciler = _loaded(local_cache, remote_store, None, then=steps)

    assert reconciler.state is SyncState.READY
    assert reconciler.document == make_document()


def test_follow_session_switches_identity_on_change(
    local_cache: FakeLocalCache, remote_store: FakeRemoteStore
) -> None:
    remote_store.records[ALICE.user_id] = make_document().serialize()
    session = Session()

    async def steps(r: Reconciler) -> None:
        unsubscribe = follow_session(r, session)
        session.sign_in(ALICE)
        for _ in range(200):
            await asyncio.sleep(0.01)
            if r.identity == ALICE and r.ready:
                break
        unsubscribe()

    reconciler = _loaded(local_cache, remote_store, None, then=steps)

    assert reconciler.identity == ALICE
    assert reconciler.document == make_document()
