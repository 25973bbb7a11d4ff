"""Document store with live subscriptions.

The tracker keeps three collections (``partners``, ``income``, ``budgets``)
under one namespace.  Consumers never read the store directly: they
subscribe to a collection and receive a :class:`Snapshot` every time the
collection changes, carrying the full document list plus the per-document
changes since the previous snapshot that subscriber saw.

:class:`SQLiteDocumentStore` persists documents as JSON rows in a single
SQLite table.  Every write fans out synchronously to all subscriptions of
the written collection in this process; :meth:`DocumentStore.poll` picks up
writes made by other processes sharing the database file.
"""

from __future__ import annotations

import inspect
import json
import logging
import sqlite3
import threading
import uuid
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

COLLECTIONS = ('partners', 'income', 'budgets')

ADDED = 'added'
MODIFIED = 'modified'
REMOVED = 'removed'

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS documents (
    namespace TEXT NOT NULL,
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (namespace, collection, doc_id)
);

CREATE INDEX IF NOT EXISTS ix_documents_collection ON documents (namespace, collection);
"""


class StoreError(RuntimeError):
    """Raised when the underlying database rejects an operation."""


@dataclass(frozen=True)
class DocumentChange:
    type: str  # added | modified | removed
    doc_id: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class Snapshot:
    collection: str
    documents: List[Dict[str, Any]]
    changes: List[DocumentChange] = field(default_factory=list)
    is_initial: bool = False


SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]
Predicate = Callable[[Mapping[str, Any]], bool]


class Subscription:
    """A standing request for snapshots of one collection."""

    def __init__(
        self,
        store: 'DocumentStore',
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        predicate: Optional[Predicate] = None,
    ) -> None:
        self.store = store
        self.collection = collection
        self._on_snapshot = _callback_ref(on_snapshot)
        self._on_error = _callback_ref(on_error) if on_error is not None else None
        self.predicate = predicate
        self.active = True
        self.failed = False
        self._last: Optional[Dict[str, Dict[str, Any]]] = None

    @property
    def on_snapshot(self) -> Optional[SnapshotCallback]:
        return self._on_snapshot()

    @property
    def on_error(self) -> Optional[ErrorCallback]:
        return self._on_error() if self._on_error is not None else None

    @property
    def alive(self) -> bool:
        """False once the object owning a bound-method callback is gone."""
        return self.active and self.on_snapshot is not None

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.store._detach(self)

    def _deliver(self, rows: List[Dict[str, Any]]) -> bool:
        """Diff ``rows`` against the previous view and invoke the callback.

        Returns True when a snapshot was delivered.
        """
        if self.predicate is not None:
            rows = [row for row in rows if self.predicate(row)]
        current = {row['id']: row for row in rows}
        is_initial = self._last is None
        previous = self._last or {}

        changes: List[DocumentChange] = []
        for doc_id, row in current.items():
            data = {k: v for k, v in row.items() if k != 'id'}
            if doc_id not in previous:
                changes.append(DocumentChange(ADDED, doc_id, data))
            elif previous[doc_id] != row:
                changes.append(DocumentChange(MODIFIED, doc_id, data))
        for doc_id, row in previous.items():
            if doc_id not in current:
                changes.append(DocumentChange(REMOVED, doc_id, {k: v for k, v in row.items() if k != 'id'}))

        if not is_initial and not changes:
            return False
        callback = self.on_snapshot
        if callback is None:
            self.unsubscribe()
            return False
        self._last = current
        callback(Snapshot(self.collection, rows, changes, is_initial))
        return True

    def _fail(self, exc: Exception) -> None:
        logger.error("Subscription to %s failed; it will no longer update: %s", self.collection, exc)
        self.failed = True
        self.active = False
        self.store._detach(self)
        on_error = self.on_error
        if on_error is not None:
            on_error(exc)


class DocumentStore(ABC):
    """Contract consumed by the tracker collections."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._lock = threading.RLock()

    # Abstract storage -------------------------------------------------------

    @abstractmethod
    def _read(self, collection: str) -> List[Dict[str, Any]]:
        """Return ``[{"id": ..., **fields}]`` in creation order."""

    @abstractmethod
    def _write(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool) -> None:
        ...

    @abstractmethod
    def _remove(self, collection: str, doc_id: str) -> None:
        ...

    # Public API -------------------------------------------------------------

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        predicate: Optional[Predicate] = None,
    ) -> Subscription:
        """Attach a listener; the initial snapshot is delivered before returning."""
        _check_collection(collection)
        subscription = Subscription(self, collection, on_snapshot, on_error, predicate)
        with self._lock:
            self._subscriptions.append(subscription)
            self._deliver_to([subscription], collection)
        return subscription

    def upsert(
        self,
        collection: str,
        doc_id: Optional[str],
        fields: Mapping[str, Any],
        merge: bool = True,
    ) -> str:
        """Create or update a document and return its id.

        ``doc_id=None`` allocates a new opaque id.  With ``merge=True`` the
        given top-level fields are merged into an existing document.
        """
        _check_collection(collection)
        target_id = doc_id or new_document_id()
        payload = {k: v for k, v in dict(fields).items() if k != 'id'}
        with self._lock:
            self._write(collection, target_id, payload, merge)
            logger.debug("Wrote %s/%s", collection, target_id)
            self._fan_out(collection)
        return target_id

    def delete(self, collection: str, doc_id: str) -> None:
        _check_collection(collection)
        with self._lock:
            self._remove(collection, doc_id)
            logger.debug("Deleted %s/%s", collection, doc_id)
            self._fan_out(collection)

    def poll(self) -> int:
        """Re-read subscribed collections and deliver any changed views.

        Returns:
            Number of snapshots delivered.
        """
        delivered = 0
        with self._lock:
            self._prune()
            for collection in {sub.collection for sub in self._subscriptions}:
                delivered += self._fan_out(collection)
        return delivered

    @property
    def subscription_count(self) -> int:
        """Live subscriptions, after dropping those whose owner was collected."""
        with self._lock:
            self._prune()
            return len(self._subscriptions)

    # Internal ---------------------------------------------------------------

    def _prune(self) -> None:
        dead = [sub for sub in self._subscriptions if not sub.alive]
        for sub in dead:
            sub.active = False
            self._subscriptions.remove(sub)
        if dead:
            logger.debug("Dropped %d subscription(s) whose owner is gone", len(dead))

    def _fan_out(self, collection: str) -> int:
        self._prune()
        targets = [sub for sub in self._subscriptions if sub.collection == collection]
        return self._deliver_to(targets, collection)

    def _deliver_to(self, targets: List[Subscription], collection: str) -> int:
        if not targets:
            return 0
        try:
            rows = self._read(collection)
        except StoreError as exc:
            for sub in targets:
                sub._fail(exc)
            return 0
        delivered = 0
        for sub in targets:
            try:
                if sub._deliver([dict(row) for row in rows]):
                    delivered += 1
            except Exception as exc:  # a failing listener only ends its own subscription
                logger.exception("Snapshot listener for %s raised", collection)
                sub._fail(exc)
        if delivered:
            logger.debug("Delivered %d snapshot(s) of %s", delivered, collection)
        return delivered

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


class SQLiteDocumentStore(DocumentStore):
    """Document store persisted in a SQLite file."""

    def __init__(self, path: Path | str, namespace: str, timeout: float = 5.0) -> None:
        super().__init__()
        self.path = Path(path)
        self.namespace = namespace
        self.timeout = timeout
        self.init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=self.timeout)
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"Could not open document store at {self.path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"Document store operation failed: {exc}") from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT doc_id, data FROM documents WHERE namespace = ? AND collection = ? ORDER BY rowid ASC",
                (self.namespace, collection),
            ).fetchall()
        documents: List[Dict[str, Any]] = []
        for doc_id, data in rows:
            try:
                fields = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable document %s/%s", collection, doc_id)
                continue
            if not isinstance(fields, dict):
                continue
            documents.append({'id': doc_id, **fields})
        return documents

    def _write(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self.connect() as conn:
            if merge:
                row = conn.execute(
                    "SELECT data FROM documents WHERE namespace = ? AND collection = ? AND doc_id = ?",
                    (self.namespace, collection, doc_id),
                ).fetchone()
                if row is not None:
                    try:
                        existing = json.loads(row[0])
                    except json.JSONDecodeError:
                        existing = {}
                    if isinstance(existing, dict):
                        fields = {**existing, **fields}
            conn.execute(
                "INSERT INTO documents (namespace, collection, doc_id, data, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (namespace, collection, doc_id) "
                "DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at",
                (self.namespace, collection, doc_id, json.dumps(fields, default=str), now, now),
            )
            conn.commit()

    def _remove(self, collection: str, doc_id: str) -> None:
        with self.connect() as conn:
            conn.execute(
                "DELETE FROM documents WHERE namespace = ? AND collection = ? AND doc_id = ?",
                (self.namespace, collection, doc_id),
            )
            conn.commit()


def _callback_ref(callback: Callable) -> Callable[[], Optional[Callable]]:
    """Reference to ``callback`` that does not keep a bound method's owner alive.

    Plain functions and builtins are held strongly.
    """
    if inspect.ismethod(callback):
        return weakref.WeakMethod(callback)
    return lambda: callback


def new_document_id() -> str:
    """Opaque 20-character identifier for store-assigned ids."""
    return uuid.uuid4().hex[:20]


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection {collection!r}; expected one of {COLLECTIONS}")
