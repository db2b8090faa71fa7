from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

pytest.importorskip("firebase_admin")

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from lecturehub.services.documents import (
    FIRESTORE_BATCH_LIMIT,
    DocumentNotFoundError,
    DocumentStoreError,
    FirestoreDocumentStore,
    matches_filters,
    sort_snapshots,
    DocumentSnapshot,
)


STAMP = datetime(2025, 3, 12, 9, 30, tzinfo=timezone.utc)


def _resolve_timestamps(data: Dict[str, Any], stamp: datetime = STAMP) -> Dict[str, Any]:
    return {key: (stamp if value is firestore.SERVER_TIMESTAMP else value) for key, value in data.items()}


class FakeDocument:
    def __init__(self, document_id: str, data: Optional[Dict[str, Any]]) -> None:
        self.id = document_id
        self._data = data
        self.exists = data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class FakeReference:
    def __init__(self, client: "FakeClient", collection: str, document_id: str) -> None:
        self._client = client
        self._collection = collection
        self.id = document_id

    @property
    def _documents(self) -> Dict[str, Dict[str, Any]]:
        return self._client.data.setdefault(self._collection, {})

    def set(self, data: Dict[str, Any]) -> None:
        self._documents[self.id] = _resolve_timestamps(data, self._client.now)

    def get(self) -> FakeDocument:
        return FakeDocument(self.id, self._documents.get(self.id))

    def update(self, fields: Dict[str, Any]) -> None:
        if self.id not in self._documents:
            raise google_exceptions.NotFound("No document to update")
        self._documents[self.id].update(_resolve_timestamps(fields, self._client.now))

    def delete(self) -> None:
        self._documents.pop(self.id, None)


class FakeQuery:
    def __init__(
        self,
        client: "FakeClient",
        collection: str,
        filters: Optional[List[Any]] = None,
        order: Optional[Any] = None,
        limit_to: Optional[int] = None,
    ) -> None:
        self._client = client
        self._collection = collection
        self._filters = filters or []
        self._order = order
        self._limit = limit_to

    def where(self, field_name: str, operator: str, value: Any) -> "FakeQuery":
        return FakeQuery(
            self._client, self._collection, self._filters + [(field_name, operator, value)], self._order, self._limit
        )

    def order_by(self, field_name: str, direction: str = "ASCENDING") -> "FakeQuery":
        return FakeQuery(self._client, self._collection, self._filters, (field_name, direction), self._limit)

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self._client, self._collection, self._filters, self._order, count)

    def stream(self):
        if self._client.unavailable:
            raise google_exceptions.ServiceUnavailable("backend offline")
        if self._order and self._filters and self._client.require_index:
            raise google_exceptions.FailedPrecondition("The query requires an index")
        documents = self._client.data.get(self._collection, {})
        snapshots = [
            DocumentSnapshot(id=document_id, data=dict(data))
            for document_id, data in documents.items()
            if matches_filters(data, self._filters)
        ]
        if self._order:
            field_name, direction = self._order
            snapshots = sort_snapshots(
                snapshots, field_name, descending=direction == firestore.Query.DESCENDING
            )
        if self._limit is not None:
            snapshots = snapshots[: self._limit]
        return iter(FakeDocument(snapshot.id, snapshot.data) for snapshot in snapshots)

    def count(self):
        total = sum(1 for _ in self.stream())
        return SimpleNamespace(get=lambda: [[SimpleNamespace(value=total)]])


class FakeCollection(FakeQuery):
    def document(self, document_id: Optional[str] = None) -> FakeReference:
        if document_id is None:
            self._client.generated += 1
            document_id = f"generated{self._client.generated:011d}"
        return FakeReference(self._client, self._collection, document_id)

    def on_snapshot(self, callback):
        documents = [FakeDocument(key, value) for key, value in self._client.data.get(self._collection, {}).items()]
        callback(documents, [], STAMP)
        watch = SimpleNamespace(unsubscribed=False)
        watch.unsubscribe = lambda: setattr(watch, "unsubscribed", True)
        self._client.watches.append(watch)
        return watch


class FakeBatch:
    def __init__(self, client: "FakeClient") -> None:
        self._client = client
        self._pending: List[Any] = []

    def set(self, reference: FakeReference, data: Dict[str, Any]) -> None:
        self._pending.append((reference, data))

    def commit(self) -> None:
        self._client.commits.append(len(self._pending))
        for reference, data in self._pending:
            reference.set(data)


class FakeClient:
    def __init__(self) -> None:
        self.data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.generated = 0
        self.commits: List[int] = []
        self.watches: List[Any] = []
        self.require_index = False
        self.unavailable = False
        self.now = STAMP

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    def get_all(self, references: List[FakeReference]):
        return iter(reference.get() for reference in references)


@pytest.fixture()
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def firestore_store(client: FakeClient) -> FirestoreDocumentStore:
    return FirestoreDocumentStore(client)


def test_add_stamps_server_timestamps_and_returns_plain_values(firestore_store, client) -> None:
    document_id = firestore_store.add("departments", {"name": "Computing", "id": "ignored"})

    stored = client.data["departments"][document_id]
    snapshot = firestore_store.get("departments", document_id)

    assert "id" not in stored
    assert stored["createdAt"] == STAMP
    assert snapshot.data["createdAt"] == STAMP.isoformat()
    assert snapshot.data["name"] == "Computing"
    assert firestore_store.get("departments", "missing") is None


def test_set_keeps_created_at_when_replacing(firestore_store, client) -> None:
    firestore_store.set("attendance", "s1", {"present": 3})
    client.now = datetime(2025, 3, 19, 8, 0, tzinfo=timezone.utc)

    firestore_store.set("attendance", "s1", {"present": 4})

    stored = client.data["attendance"]["s1"]
    assert stored["present"] == 4
    assert stored["createdAt"] == STAMP
    assert stored["updatedAt"] == client.now


def test_set_many_keeps_created_at_of_existing_documents(firestore_store, client) -> None:
    firestore_store.set("schedules", "old", {"title": "Week 1"})
    client.now = datetime(2025, 3, 19, 8, 0, tzinfo=timezone.utc)

    firestore_store.set_many("schedules", [("old", {"title": "Week 1 (moved)"}), ("new", {"title": "Week 2"})])

    assert client.data["schedules"]["old"]["createdAt"] == STAMP
    assert client.data["schedules"]["old"]["updatedAt"] == client.now
    assert client.data["schedules"]["new"]["createdAt"] == client.now


def test_update_translates_not_found(firestore_store) -> None:
    with pytest.raises(DocumentNotFoundError):
        firestore_store.update("courses", "missing", {"location": "Hall A"})


def test_delete_reports_missing_documents(firestore_store) -> None:
    document_id = firestore_store.add("rooms", {"name": "Lab 1"})

    assert firestore_store.delete("rooms", document_id) is True
    assert firestore_store.delete("rooms", document_id) is False


def test_set_many_splits_large_batches(firestore_store, client) -> None:
    items = [(f"doc{index}", {"index": index}) for index in range(FIRESTORE_BATCH_LIMIT + 5)]

    ids = firestore_store.set_many("schedules", items)

    assert len(ids) == FIRESTORE_BATCH_LIMIT + 5
    assert client.commits == [FIRESTORE_BATCH_LIMIT, 5]


def test_query_falls_back_to_local_sort_without_index(firestore_store, client) -> None:
    for name, year in (("Networks", 3), ("Algebra", 1), ("Compilers", 4)):
        firestore_store.add("courses", {"name": name, "year": year, "active": True})
    client.require_index = True

    results = firestore_store.query(
        "courses", filters=[("active", "==", True)], order_by="year", descending=True, limit=2
    )

    assert [item.data["name"] for item in results] == ["Compilers", "Networks"]


def test_count_uses_aggregation_query(firestore_store) -> None:
    firestore_store.add("users", {"role": "lecturer"})
    firestore_store.add("users", {"role": "hod"})

    assert firestore_store.count("users") == 2
    assert firestore_store.count("users", [("role", "==", "hod")]) == 1


def test_api_errors_become_store_errors(firestore_store, client) -> None:
    client.unavailable = True

    with pytest.raises(DocumentStoreError):
        firestore_store.query("courses")


def test_watch_forwards_snapshots_and_unsubscribes(firestore_store, client) -> None:
    firestore_store.add("schedules", {"title": "Week 1"})
    received = []

    unsubscribe = firestore_store.watch("schedules", lambda snapshots: received.append(snapshots))
    unsubscribe()

    assert [item.data["title"] for item in received[0]] == ["Week 1"]
    assert client.watches[0].unsubscribed is True
