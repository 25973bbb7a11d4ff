"""Tests for the SQLite document store and its live subscriptions."""

from __future__ import annotations

import gc

import pytest

from commercial_tracker.store import ADDED, MODIFIED, REMOVED, SQLiteDocumentStore


@pytest.fixture
def store(tmp_path):
    return SQLiteDocumentStore(tmp_path / "tracker.db", "artifacts/test/public/data")


def _recorder():
    snapshots = []
    return snapshots, snapshots.append


def test_subscribe_delivers_initial_snapshot(store) -> None:
    store.upsert("partners", "p1", {"type": "customer", "name": "Acme"})
    snapshots, record = _recorder()
    store.subscribe("partners", record)
    assert len(snapshots) == 1
    first = snapshots[0]
    assert first.is_initial
    assert first.documents == [{"id": "p1", "type": "customer", "name": "Acme"}]
    assert [(c.type, c.doc_id) for c in first.changes] == [(ADDED, "p1")]


def test_empty_collection_still_gets_initial_snapshot(store) -> None:
    snapshots, record = _recorder()
    store.subscribe("income", record)
    assert len(snapshots) == 1
    assert snapshots[0].documents == []
    assert snapshots[0].changes == []


def test_writes_fan_out_with_change_types(store) -> None:
    snapshots, record = _recorder()
    store.subscribe("income", record)

    doc_id = store.upsert("income", None, {"incomeType": "Consultancy", "value": 10})
    store.upsert("income", doc_id, {"value": 20})
    store.delete("income", doc_id)

    kinds = [[c.type for c in snap.changes] for snap in snapshots[1:]]
    assert kinds == [[ADDED], [MODIFIED], [REMOVED]]
    assert snapshots[2].changes[0].data == {"incomeType": "Consultancy", "value": 20}
    assert snapshots[3].documents == []


def test_merge_upsert_keeps_other_fields(store) -> None:
    doc_id = store.upsert("income", None, {"incomeType": "Consultancy", "status": "pending"})
    assert len(doc_id) == 20
    store.upsert("income", doc_id, {"status": "posted"})
    assert store._read("income") == [{"id": doc_id, "incomeType": "Consultancy", "status": "posted"}]

    store.upsert("income", doc_id, {"status": "pending"}, merge=False)
    assert store._read("income") == [{"id": doc_id, "status": "pending"}]


def test_documents_keep_creation_order(store) -> None:
    store.upsert("partners", "b", {"name": "B"})
    store.upsert("partners", "a", {"name": "A"})
    store.upsert("partners", "b", {"name": "B2"})
    assert [doc["id"] for doc in store._read("partners")] == ["b", "a"]


def test_identical_rewrite_is_not_redelivered(store) -> None:
    snapshots, record = _recorder()
    store.upsert("budgets", "2025-10-Consultancy", {"month": "2025-10", "type": "Consultancy", "value": 5})
    store.subscribe("budgets", record)
    store.upsert("budgets", "2025-10-Consultancy", {"value": 5})
    assert len(snapshots) == 1


def test_unsubscribe_stops_delivery(store) -> None:
    snapshots, record = _recorder()
    subscription = store.subscribe("partners", record)
    subscription.unsubscribe()
    subscription.unsubscribe()
    store.upsert("partners", None, {"name": "Late"})
    assert len(snapshots) == 1
    assert store.subscription_count == 0


def test_poll_picks_up_writes_from_another_store(tmp_path) -> None:
    path = tmp_path / "shared.db"
    reader = SQLiteDocumentStore(path, "ns")
    writer = SQLiteDocumentStore(path, "ns")
    snapshots, record = _recorder()
    reader.subscribe("income", record)

    writer.upsert("income", "i1", {"value": 1})
    assert len(snapshots) == 1
    assert reader.poll() == 1
    assert [c.type for c in snapshots[-1].changes] == [ADDED]
    assert reader.poll() == 0


def test_namespaces_are_isolated(tmp_path) -> None:
    path = tmp_path / "shared.db"
    one = SQLiteDocumentStore(path, "artifacts/one/public/data")
    two = SQLiteDocumentStore(path, "artifacts/two/public/data")
    one.upsert("partners", "p1", {"name": "Acme"})
    assert two._read("partners") == []


def test_listener_error_fails_only_that_subscription(store) -> None:
    errors = []

    def explode(snapshot):
        if not snapshot.is_initial:
            raise RuntimeError("boom")

    bad = store.subscribe("partners", explode, on_error=errors.append)
    snapshots, record = _recorder()
    store.subscribe("partners", record)

    store.upsert("partners", None, {"name": "Acme"})
    assert bad.failed and not bad.active
    assert isinstance(errors[0], RuntimeError)
    assert len(snapshots) == 2


def test_predicate_filters_documents(store) -> None:
    store.upsert("partners", "c", {"type": "customer"})
    store.upsert("partners", "s", {"type": "supplier"})
    snapshots, record = _recorder()
    store.subscribe("partners", record, predicate=lambda doc: doc.get("type") == "supplier")
    assert [doc["id"] for doc in snapshots[0].documents] == ["s"]


def test_unknown_collection_raises(store) -> None:
    with pytest.raises(ValueError):
        store.upsert("invoices", None, {})
    with pytest.raises(ValueError):
        store.subscribe("invoices", lambda snapshot: None)


class _Listener:
    def __init__(self) -> None:
        self.snapshots = []

    def handle(self, snapshot) -> None:
        self.snapshots.append(snapshot)


def test_bound_method_listener_does_not_outlive_its_owner(store) -> None:
    listener = _Listener()
    subscription = store.subscribe("partners", listener.handle)
    assert store.subscription_count == 1
    del listener
    gc.collect()
    assert not subscription.alive
    assert store.poll() == 0
    assert store.subscription_count == 0
