"""
Tests for the snapshot store.
"""

from src.polling.snapshot_store import EMPTY_SNAPSHOT, SnapshotStore


def test_unset_table_returns_empty_snapshot():
    store = SnapshotStore()
    assert store.get("users") == EMPTY_SNAPSHOT
    assert store.get("users") == ()


def test_set_replaces_snapshot():
    store = SnapshotStore()
    store.set("users", [{"id": 1}])
    store.set("users", [{"id": 2}, {"id": 3}])
    assert store.get("users") == ({"id": 2}, {"id": 3})


def test_set_is_not_affected_by_later_list_mutation():
    store = SnapshotStore()
    rows = [{"id": 1}]
    store.set("users", rows)
    rows.append({"id": 2})
    assert len(store.get("users")) == 1


def test_clear():
    store = SnapshotStore()
    store.set("users", [])
    store.set("orders", [{"id": 1}])

    store.clear("users")
    store.clear("missing")
    assert store.get("orders") == ({"id": 1},)
    assert store.get("users") == ()
