"""Document store: the persistence and sync boundary behind every entity store.

Each record lives in the ``documents`` table under a collection name, with its
fields serialised to JSON.  Listeners registered with :meth:`DocumentStore.listen`
receive the full ordered collection immediately and again after every
committed write to it, which is how entity stores keep their local lists in
sync without re-reading after each mutation.

Writes are single-document and all-or-nothing.  Any database failure is
raised as :class:`DocumentStoreError`; nothing is retried.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator

from pydantic_core import to_jsonable_python
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signalpm.db import get_session
from signalpm.models import Document
from signalpm.utils import as_utc, json_parse, new_document_id, utcnow

log = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]

# Fields owned by the store itself; never written into data_json.
RESERVED_FIELDS = frozenset({"id", "created_at", "updated_at", "created_by"})


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class DocumentStoreError(Exception):
    """A read or write against the document store failed."""


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document to update: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


@dataclass
class _Listener:
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None
    order_by: str
    descending: bool


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def _encode(data: dict[str, Any], now: datetime) -> dict[str, Any]:
    out = {
        key: now if value is SERVER_TIMESTAMP else value
        for key, value in data.items()
        if key not in RESERVED_FIELDS
    }
    return to_jsonable_python(out)


def _to_record(doc: Document) -> dict[str, Any]:
    data = json_parse(doc.data_json, {})
    return {
        **data,
        "id": doc.id,
        "created_at": as_utc(doc.created_at),
        "updated_at": as_utc(doc.updated_at),
        "created_by": doc.created_by or "",
    }


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return (1, value)
    if isinstance(value, datetime):
        return (2, as_utc(value))
    if value is None:
        return (0, "")
    return (1, str(value))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class DocumentStore:
    """Collections of JSON documents with snapshot listeners."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory
        self._listeners: dict[str, list[_Listener]] = defaultdict(list)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise DocumentStoreError(str(exc)) from exc
        finally:
            session.close()

    # -- reads --------------------------------------------------------------

    def snapshot(
        self, collection: str, order_by: str = "created_at", descending: bool = True,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            docs = session.execute(
                select(Document).where(Document.collection == collection)
            ).scalars().all()
            records = [_to_record(d) for d in docs]
        records.sort(key=lambda r: _sort_key(r.get(order_by)), reverse=descending)
        return records

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            doc = session.get(Document, (collection, doc_id))
            if doc is None:
                return None
            return _to_record(doc)

    def query(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        return [r for r in self.snapshot(collection) if r.get(field) == value]

    # -- listeners ----------------------------------------------------------

    def listen(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> Callable[[], None]:
        """Register a snapshot listener and deliver the current snapshot.

        Returns a callable that removes the listener.  Calling it twice is
        harmless.
        """
        listener = _Listener(on_snapshot, on_error, order_by, descending)
        self._listeners[collection].append(listener)
        log.debug("Listening to %s (%d listeners)", collection, len(self._listeners[collection]))
        self._deliver(collection, listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(collection, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def listener_count(self, collection: str) -> int:
        return len(self._listeners.get(collection, []))

    def _deliver(self, collection: str, listener: _Listener) -> None:
        try:
            records = self.snapshot(collection, listener.order_by, listener.descending)
        except DocumentStoreError as exc:
            if listener.on_error is None:
                raise
            listener.on_error(exc)
            return
        listener.on_snapshot(records)

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners.get(collection, [])):
            self._deliver(collection, listener)

    # -- writes -------------------------------------------------------------

    def add(self, collection: str, data: dict[str, Any], created_by: str = "") -> str:
        """Create a document with a server-assigned id and timestamps."""
        now = utcnow()
        doc_id = new_document_id()
        with self._session() as session:
            session.add(Document(
                id=doc_id, collection=collection, data_json=json.dumps(_encode(data, now)),
                created_by=created_by, created_at=now, updated_at=now,
            ))
        self._notify(collection)
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict[str, Any],
        *, merge: bool = True, created_by: str = "",
    ) -> None:
        """Create or overwrite a document with a caller-chosen id."""
        now = utcnow()
        encoded = _encode(data, now)
        with self._session() as session:
            doc = session.get(Document, (collection, doc_id))
            if doc is None:
                session.add(Document(
                    id=doc_id, collection=collection, data_json=json.dumps(encoded),
                    created_by=created_by, created_at=now, updated_at=now,
                ))
            else:
                current = json_parse(doc.data_json, {}) if merge else {}
                current.update(encoded)
                doc.data_json = json.dumps(current)
                doc.updated_at = now
        self._notify(collection)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Merge *data* into an existing document."""
        now = utcnow()
        with self._session() as session:
            doc = session.get(Document, (collection, doc_id))
            if doc is None:
                raise DocumentNotFoundError(collection, doc_id)
            current = json_parse(doc.data_json, {})
            current.update(_encode(data, now))
            doc.data_json = json.dumps(current)
            doc.updated_at = now
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._session() as session:
            session.execute(
                delete(Document).where(Document.collection == collection, Document.id == doc_id)
            )
        self._notify(collection)
