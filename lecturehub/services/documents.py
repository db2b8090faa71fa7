"""Document persistence backed by SQLite locally or Firestore in production."""

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from ..config import AppConfig


LOGGER = logging.getLogger(__name__)


SUPPORTED_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")

# Firestore rejects batches with more than 500 writes.
FIRESTORE_BATCH_LIMIT = 500

Filter = Tuple[str, str, Any]
SnapshotCallback = Callable[[List["DocumentSnapshot"]], None]
Unsubscribe = Callable[[], None]


class DocumentStoreError(RuntimeError):
    """Raised when the backing database cannot complete an operation."""


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, document_id: str) -> None:
        super().__init__(f"Document '{document_id}' was not found in '{collection}'.")
        self.collection = collection
        self.document_id = document_id


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class DocumentStore(Protocol):
    """Operations every storage backend provides."""

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    def set(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        ...

    def set_many(
        self, collection: str, items: Iterable[Tuple[str, Dict[str, Any]]]
    ) -> List[str]:
        ...

    def get(self, collection: str, document_id: str) -> Optional[DocumentSnapshot]:
        ...

    def update(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, collection: str, document_id: str) -> bool:
        ...

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        ...

    def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        ...

    def watch(self, collection: str, callback: SnapshotCallback) -> Unsubscribe:
        ...

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        ...


def new_document_id() -> str:
    """Return a random 20 character identifier, the length Firestore uses."""

    return uuid.uuid4().hex[:20]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate_filters(filters: Sequence[Filter]) -> None:
    for field_name, operator, _ in filters:
        if operator not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator '{operator}' on '{field_name}'.")


def _compare(actual: Any, operator: str, expected: Any) -> bool:
    if operator == "==":
        return actual == expected
    if operator == "!=":
        return actual != expected
    if operator == "in":
        return actual in (expected or ())
    if operator == "array-contains":
        return isinstance(actual, list) and expected in actual
    try:
        if operator == "<":
            return actual < expected
        if operator == "<=":
            return actual <= expected
        if operator == ">":
            return actual > expected
        if operator == ">=":
            return actual >= expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator '{operator}'.")


def matches_filters(data: Dict[str, Any], filters: Sequence[Filter]) -> bool:
    """Evaluate Firestore-style filters; documents missing a field never match."""

    for field_name, operator, expected in filters:
        if field_name not in data:
            return False
        if not _compare(data[field_name], operator, expected):
            return False
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    if value is None:
        return (2, "")
    if isinstance(value, (bool, int, float)):
        return (0, float(value))
    return (1, str(value))


def sort_snapshots(
    snapshots: Iterable[DocumentSnapshot], order_by: str, *, descending: bool = False
) -> List[DocumentSnapshot]:
    """Sort snapshots by *order_by*, keeping documents without the field last."""

    items = list(snapshots)
    present = [item for item in items if item.get(order_by) is not None]
    missing = [item for item in items if item.get(order_by) is None]
    present.sort(key=lambda item: _sort_key(item.get(order_by)), reverse=descending)
    return present + missing


def _to_plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


class _InstrumentedStore:
    """Shared plumbing that reports each operation as a ``DB_QUERY`` event."""

    backend_name = "documents"

    def __init__(self, *, event_emitter: Optional[Callable[..., None]] = None) -> None:
        self._event_emitter = event_emitter

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        self._event_emitter = emitter

    @contextlib.contextmanager
    def _track_db_event(self, action: str, **payload: Any) -> Iterator[Dict[str, Any]]:
        event_payload: Dict[str, Any] = {"backend": self.backend_name, **payload}
        if self._event_emitter is None:
            yield event_payload
            return

        started = time.perf_counter()
        try:
            yield event_payload
        except Exception as exc:
            event_payload.setdefault("status", "error")
            event_payload.setdefault("error", f"{exc.__class__.__name__}: {exc}")
            raise
        finally:
            event_payload.setdefault("status", "ok")
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            self._event_emitter(
                "DB_QUERY",
                action,
                payload={key: value for key, value in event_payload.items() if value is not None},
                duration_ms=elapsed_ms,
            )


class SQLiteDocumentStore(_InstrumentedStore):
    """Store JSON documents in a single SQLite table keyed by collection and id.

    Queries load the collection and filter in Python, which keeps the filter
    semantics identical to the Firestore backend for the small collections the
    dashboard works with. Listeners registered through :meth:`watch` are
    notified in-process after every write to their collection.
    """

    backend_name = "sqlite"

    def __init__(
        self,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        super().__init__(event_emitter=event_emitter)
        self._db_path = config.database_file
        self._listeners: Dict[str, Dict[int, SnapshotCallback]] = {}
        self._listener_ids = 0
        self._listener_lock = threading.Lock()

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as error:
            raise DocumentStoreError(f"Could not open database '{self._db_path}': {error}") from error
        connection.row_factory = sqlite3.Row
        try:
            with connection:
                yield connection
        except sqlite3.Error as error:
            raise DocumentStoreError(f"Database operation failed: {error}") from error
        finally:
            connection.close()

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row) -> DocumentSnapshot:
        data = json.loads(row["data"] or "{}")
        data["createdAt"] = row["created_at"]
        data["updatedAt"] = row["updated_at"]
        return DocumentSnapshot(id=row["id"], data=data)

    @staticmethod
    def _encode(data: Dict[str, Any]) -> str:
        body = {
            key: value for key, value in data.items() if key not in {"id", "createdAt", "updatedAt"}
        }
        return json.dumps(_to_plain(body), sort_keys=True)

    def _write(
        self,
        connection: sqlite3.Connection,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
    ) -> None:
        now = _utc_timestamp()
        connection.execute(
            """
            INSERT INTO documents(collection, id, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(collection, id) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (collection, document_id, self._encode(data), now, now),
        )

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        document_id = new_document_id()
        with self._track_db_event("add", collection=collection, document_id=document_id):
            with self._connect() as connection:
                self._write(connection, collection, document_id, data)
        LOGGER.debug("Added document %s/%s", collection, document_id)
        self._notify(collection)
        return document_id

    def set(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        with self._track_db_event("set", collection=collection, document_id=document_id):
            with self._connect() as connection:
                self._write(connection, collection, document_id, data)
        LOGGER.debug("Stored document %s/%s", collection, document_id)
        self._notify(collection)

    def set_many(
        self, collection: str, items: Iterable[Tuple[str, Dict[str, Any]]]
    ) -> List[str]:
        pending = list(items)
        with self._track_db_event("set_many", collection=collection, count=len(pending)):
            with self._connect() as connection:
                for document_id, data in pending:
                    self._write(connection, collection, document_id, data)
        LOGGER.debug("Stored %s documents in %s", len(pending), collection)
        if pending:
            self._notify(collection)
        return [document_id for document_id, _ in pending]

    def get(self, collection: str, document_id: str) -> Optional[DocumentSnapshot]:
        with self._track_db_event("get", collection=collection, document_id=document_id) as event:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT id, data, created_at, updated_at FROM documents "
                    "WHERE collection = ? AND id = ?",
                    (collection, document_id),
                ).fetchone()
            event["found"] = row is not None
        return self._row_to_snapshot(row) if row is not None else None

    def update(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        with self._track_db_event(
            "update", collection=collection, document_id=document_id, fields=sorted(fields)
        ):
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, document_id),
                ).fetchone()
                if row is None:
                    raise DocumentNotFoundError(collection, document_id)
                merged = json.loads(row["data"] or "{}")
                merged.update(fields)
                connection.execute(
                    "UPDATE documents SET data = ?, updated_at = ? "
                    "WHERE collection = ? AND id = ?",
                    (self._encode(merged), _utc_timestamp(), collection, document_id),
                )
        self._notify(collection)

    def delete(self, collection: str, document_id: str) -> bool:
        with self._track_db_event("delete", collection=collection, document_id=document_id) as event:
            with self._connect() as connection:
                cursor = connection.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, document_id),
                )
                removed = cursor.rowcount > 0
            event["removed"] = removed
        if removed:
            self._notify(collection)
        return removed

    def _load_collection(self, collection: str) -> List[DocumentSnapshot]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT id, data, created_at, updated_at FROM documents "
                "WHERE collection = ? ORDER BY created_at, id",
                (collection,),
            ).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        _validate_filters(filters)
        with self._track_db_event(
            "query",
            collection=collection,
            filters=[f"{name} {operator}" for name, operator, _ in filters],
            order_by=order_by,
            limit=limit,
        ) as event:
            snapshots = [
                snapshot
                for snapshot in self._load_collection(collection)
                if matches_filters(snapshot.data, filters)
            ]
            if order_by:
                snapshots = sort_snapshots(snapshots, order_by, descending=descending)
            if limit is not None:
                snapshots = snapshots[: max(0, int(limit))]
            event["rowcount"] = len(snapshots)
        return snapshots

    def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        return len(self.query(collection, filters=filters))

    def watch(self, collection: str, callback: SnapshotCallback) -> Unsubscribe:
        with self._listener_lock:
            self._listener_ids += 1
            token = self._listener_ids
            self._listeners.setdefault(collection, {})[token] = callback
        LOGGER.debug("Registered listener %s on %s", token, collection)
        callback(self._load_collection(collection))

        def _unsubscribe() -> None:
            with self._listener_lock:
                self._listeners.get(collection, {}).pop(token, None)
            LOGGER.debug("Removed listener %s from %s", token, collection)

        return _unsubscribe

    def _notify(self, collection: str) -> None:
        with self._listener_lock:
            callbacks = list(self._listeners.get(collection, {}).values())
        if not callbacks:
            return
        snapshots = self._load_collection(collection)
        for callback in callbacks:
            try:
                callback(list(snapshots))
            except Exception:  # noqa: BLE001 - one listener must not break the write path
                LOGGER.exception("Snapshot listener for %s failed", collection)


class FirestoreDocumentStore(_InstrumentedStore):
    """Thin wrapper around a ``google.cloud.firestore`` client."""

    backend_name = "firestore"

    def __init__(
        self,
        client: Any,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        super().__init__(event_emitter=event_emitter)
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> "FirestoreDocumentStore":
        try:
            firebase_admin.get_app()
        except ValueError:
            if config.firestore_credentials is not None:
                credential = credentials.Certificate(str(config.firestore_credentials))
            else:
                credential = credentials.ApplicationDefault()
            options = {"projectId": config.firestore_project} if config.firestore_project else None
            firebase_admin.initialize_app(credential, options)
            LOGGER.info(
                "Initialised Firebase app (project=%s)", config.firestore_project or "<default>"
            )
        return cls(firestore.client(), event_emitter=event_emitter)

    @staticmethod
    def _snapshot(document: Any) -> DocumentSnapshot:
        return DocumentSnapshot(id=document.id, data=_to_plain(document.to_dict() or {}))

    @staticmethod
    def _strip_reserved(data: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in data.items() if key not in {"id", "createdAt", "updatedAt"}}

    def _new_body(self, data: Dict[str, Any], created_at: Any = None) -> Dict[str, Any]:
        body = self._strip_reserved(data)
        body["createdAt"] = created_at if created_at is not None else firestore.SERVER_TIMESTAMP
        body["updatedAt"] = firestore.SERVER_TIMESTAMP
        return body

    @staticmethod
    def _created_at_of(document: Any) -> Any:
        if not document.exists:
            return None
        return (document.to_dict() or {}).get("createdAt")

    def _existing_created_at(self, references: Sequence[Any]) -> Dict[str, Any]:
        """Return the stored ``createdAt`` of every existing document in *references*."""

        stamps: Dict[str, Any] = {}
        for document in self._client.get_all(references):
            created_at = self._created_at_of(document)
            if created_at is not None:
                stamps[document.id] = created_at
        return stamps

    @contextlib.contextmanager
    def _guard(self, action: str, **payload: Any) -> Iterator[Dict[str, Any]]:
        with self._track_db_event(action, **payload) as event:
            try:
                yield event
            except google_exceptions.GoogleAPICallError as error:
                raise DocumentStoreError(f"Firestore {action} failed: {error}") from error

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        with self._guard("add", collection=collection) as event:
            reference = self._client.collection(collection).document()
            reference.set(self._new_body(data))
            event["document_id"] = reference.id
        return reference.id

    def set(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        with self._guard("set", collection=collection, document_id=document_id):
            reference = self._client.collection(collection).document(document_id)
            reference.set(self._new_body(data, self._created_at_of(reference.get())))

    def set_many(
        self, collection: str, items: Iterable[Tuple[str, Dict[str, Any]]]
    ) -> List[str]:
        pending = list(items)
        with self._guard("set_many", collection=collection, count=len(pending)):
            reference = self._client.collection(collection)
            for start in range(0, len(pending), FIRESTORE_BATCH_LIMIT):
                chunk = pending[start : start + FIRESTORE_BATCH_LIMIT]
                references = [reference.document(document_id) for document_id, _ in chunk]
                created = self._existing_created_at(references)
                batch = self._client.batch()
                for target, (document_id, data) in zip(references, chunk):
                    batch.set(target, self._new_body(data, created.get(document_id)))
                batch.commit()
        return [document_id for document_id, _ in pending]

    def get(self, collection: str, document_id: str) -> Optional[DocumentSnapshot]:
        with self._guard("get", collection=collection, document_id=document_id) as event:
            document = self._client.collection(collection).document(document_id).get()
            event["found"] = bool(document.exists)
        return self._snapshot(document) if document.exists else None

    def update(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        body = self._strip_reserved(fields)
        body["updatedAt"] = firestore.SERVER_TIMESTAMP
        with self._track_db_event(
            "update", collection=collection, document_id=document_id, fields=sorted(fields)
        ):
            try:
                self._client.collection(collection).document(document_id).update(body)
            except google_exceptions.NotFound as error:
                raise DocumentNotFoundError(collection, document_id) from error
            except google_exceptions.GoogleAPICallError as error:
                raise DocumentStoreError(f"Firestore update failed: {error}") from error

    def delete(self, collection: str, document_id: str) -> bool:
        with self._guard("delete", collection=collection, document_id=document_id) as event:
            reference = self._client.collection(collection).document(document_id)
            if not reference.get().exists:
                event["removed"] = False
                return False
            reference.delete()
            event["removed"] = True
        return True

    def _build_query(self, collection: str, filters: Sequence[Filter]) -> Any:
        query = self._client.collection(collection)
        for field_name, operator, value in filters:
            query = query.where(field_name, operator, value)
        return query

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        _validate_filters(filters)
        with self._guard(
            "query",
            collection=collection,
            filters=[f"{name} {operator}" for name, operator, _ in filters],
            order_by=order_by,
            limit=limit,
        ) as event:
            query = self._build_query(collection, filters)
            if order_by:
                direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                query = query.order_by(order_by, direction=direction)
            if limit is not None:
                query = query.limit(int(limit))
            try:
                snapshots = [self._snapshot(document) for document in query.stream()]
            except google_exceptions.FailedPrecondition as error:
                if not order_by:
                    raise
                # Filter plus order_by needs a composite index; sort locally instead.
                LOGGER.warning(
                    "Ordered query on %s rejected (%s); sorting in memory", collection, error
                )
                event["index_fallback"] = True
                unordered = self._build_query(collection, filters).stream()
                snapshots = sort_snapshots(
                    [self._snapshot(document) for document in unordered],
                    order_by,
                    descending=descending,
                )
                if limit is not None:
                    snapshots = snapshots[: max(0, int(limit))]
            event["rowcount"] = len(snapshots)
        return snapshots

    def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        _validate_filters(filters)
        with self._guard("count", collection=collection) as event:
            results = self._build_query(collection, filters).count().get()
            total = int(results[0][0].value)
            event["rowcount"] = total
        return total

    def watch(self, collection: str, callback: SnapshotCallback) -> Unsubscribe:
        def _on_snapshot(documents: Any, changes: Any, read_time: Any) -> None:
            callback([self._snapshot(document) for document in documents])

        watch = self._client.collection(collection).on_snapshot(_on_snapshot)
        LOGGER.debug("Subscribed to Firestore collection %s", collection)
        return watch.unsubscribe


def create_document_store(
    config: AppConfig,
    *,
    event_emitter: Optional[Callable[..., None]] = None,
) -> DocumentStore:
    """Return the store selected by ``config.backend``."""

    if config.backend == "firestore":
        return FirestoreDocumentStore.from_config(config, event_emitter=event_emitter)
    return SQLiteDocumentStore(config, event_emitter=event_emitter)


__all__ = [
    "DocumentNotFoundError",
    "DocumentSnapshot",
    "DocumentStore",
    "DocumentStoreError",
    "Filter",
    "FirestoreDocumentStore",
    "SQLiteDocumentStore",
    "create_document_store",
    "matches_filters",
    "new_document_id",
    "sort_snapshots",
]
