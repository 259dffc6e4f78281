"""Tests for the assignment store."""

import asyncio

from ore.store import AssignmentStore, current_store, request_scope


def test_assign_is_chainable():
    """assign() returns the store so calls can be chained."""
    store = AssignmentStore()
    assert store.assign("a", 1).assign("b", 2) is store
    assert store.get("a") == 1
    assert store.get("b") == 2


def test_get_missing_returns_default():
    store = AssignmentStore()
    assert store.get("missing") is None
    assert store.get("missing", "fallback") == "fallback"


def test_get_all_is_independent_copy():
    """Mutating the snapshot does not touch the store."""
    store = AssignmentStore().assign("items", [1, 2])
    snapshot = store.get_all()
    snapshot["other"] = True
    assert "other" not in store
    assert snapshot["items"] is store.get("items")


def test_reset_clears_everything():
    store = AssignmentStore().assign("a", 1)
    assert store.reset() is store
    assert len(store) == 0
    assert store.get_all() == {}


def test_request_scope_installs_fresh_store():
    """A request scope starts empty and restores the outer store on exit."""
    outer = current_store()
    with request_scope() as store:
        assert current_store() is store
        assert store.get_all() == {}
        store.assign("title", "x")
    assert current_store() is outer
    assert "title" not in outer


def test_request_scope_resets_given_store():
    existing = AssignmentStore().assign("stale", 1)
    with request_scope(existing) as store:
        assert store is existing
        assert "stale" not in store


def test_concurrent_requests_do_not_share_stores():
    """Interleaved asyncio requests each see only their own assignments."""

    async def request(value):
        with request_scope():
            current_store().assign("value", value)
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            return current_store().get_all()

    async def main():
        return await asyncio.gather(request("a"), request("b"), request("c"))

    results = asyncio.run(main())
    assert results == [{"value": "a"}, {"value": "b"}, {"value": "c"}]
