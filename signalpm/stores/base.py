"""Generic entity store: a local ordered list synced from one document collection.

Mutations go to the document store only; the local list is refreshed by the
snapshot listener registered in :meth:`EntityStore.subscribe`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, ClassVar, Generic, Iterator, TypeVar

from pydantic import ValidationError

from signalpm.auth import AuthContext
from signalpm.docstore import RESERVED_FIELDS, SERVER_TIMESTAMP, DocumentStore, DocumentStoreError
from signalpm.schemas import Record
from signalpm.utils import generate_id

log = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class EntityNotFoundError(LookupError):
    """A record needed for a nested mutation is not in the local list."""


class EntityStore(Generic[R]):
    collection: ClassVar[str]
    model: ClassVar[type[Record]]
    label: ClassVar[str] = "record"
    order_by: ClassVar[str] = "created_at"

    def __init__(self, docs: DocumentStore, auth: AuthContext):
        self.docs = docs
        self.auth = auth
        self.items: list[R] = []
        self.loading = False
        self.saving = False
        self.error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    def subscribe(self) -> None:
        if self._unsubscribe is not None:
            return
        self.loading = True
        self._unsubscribe = self.docs.listen(
            self.collection, self._on_snapshot, self._on_error, order_by=self.order_by,
        )

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, records: list[dict[str, Any]]) -> None:
        items = []
        for record in records:
            try:
                items.append(self.model.model_validate(record))
            except ValidationError as exc:
                log.warning("Skipping malformed %s %s: %s", self.label, record.get("id"), exc)
        self.items = items  # type: ignore[assignment]
        self.loading = False

    def _on_error(self, exc: Exception) -> None:
        log.error("%s subscription error: %s", self.collection, exc)
        self.error = str(exc)
        self.loading = False

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, entity_id: str | None) -> R | None:
        if not entity_id:
            return None
        return next((i for i in self.items if i.id == entity_id), None)

    def require(self, entity_id: str) -> R:
        item = self.get(entity_id)
        if item is None:
            raise EntityNotFoundError(f"{self.label.capitalize()} not found")
        return item

    def where(self, **fields: Any) -> list[R]:
        return [i for i in self.items if all(getattr(i, k, None) == v for k, v in fields.items())]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def defaults(self) -> dict[str, Any]:
        """Field values merged under the caller's data on :meth:`add`."""
        return {}

    @contextmanager
    def _saving(self) -> Iterator[None]:
        self.saving = True
        self.error = None
        try:
            yield
        except DocumentStoreError as exc:
            self.error = str(exc) or f"Failed to save {self.label}"
            log.warning("Write to %s failed: %s", self.collection, exc)
            raise
        finally:
            self.saving = False

    def add(self, data: dict[str, Any]) -> str:
        """Validate and create a record; returns the server-assigned id."""
        self.auth.require_edit(f"create {self.label}s")
        record = self.model.model_validate({**self.defaults(), **data, "id": ""})
        payload = record.model_dump(exclude=set(RESERVED_FIELDS))
        with self._saving():
            return self.docs.add(self.collection, payload, created_by=self.auth.user_id)

    def update(self, entity_id: str, data: dict[str, Any]) -> None:
        """Merge *data* into the remote record.

        When the record is loaded locally the merged result is validated first
        and the normalised values are written.
        """
        self.auth.require_edit(f"update {self.label}s")
        data = {k: v for k, v in data.items() if k not in RESERVED_FIELDS}
        unknown = sorted(set(data) - set(self.model.model_fields))
        if unknown:
            raise ValueError(f"Unknown {self.label} field(s): {', '.join(unknown)}")
        current = self.get(entity_id)
        if current is not None:
            checked = {k: v for k, v in data.items() if v is not SERVER_TIMESTAMP}
            merged = self.model.model_validate({**current.model_dump(), **checked})
            data = {k: v if v is SERVER_TIMESTAMP else getattr(merged, k) for k, v in data.items()}
        with self._saving():
            self.docs.update(self.collection, entity_id, data)

    def delete(self, entity_id: str) -> None:
        self.auth.require_edit(f"delete {self.label}s")
        with self._saving():
            self.docs.delete(self.collection, entity_id)

    # ------------------------------------------------------------------
    # Nested arrays
    # ------------------------------------------------------------------

    def nested(self, parent_id: str, field: str) -> list[Any]:
        return list(getattr(self.require(parent_id), field))

    def add_nested(self, parent_id: str, field: str, item: dict[str, Any], prefix: str = "") -> str:
        """Append *item* with an id unique among its siblings; returns that id."""
        items = self.nested(parent_id, field)
        item_id = generate_id(taken=(i.id for i in items), prefix=prefix)
        self.update(parent_id, {field: [*items, {**item, "id": item_id}]})
        return item_id

    def update_nested(self, parent_id: str, field: str, item_id: str, changes: dict[str, Any]) -> None:
        items = self.nested(parent_id, field)
        if not any(i.id == item_id for i in items):
            raise EntityNotFoundError(f"{field} item not found: {item_id}")
        self.update(parent_id, {
            field: [{**i.model_dump(), **changes} if i.id == item_id else i for i in items],
        })

    def remove_nested(self, parent_id: str, field: str, item_id: str) -> None:
        items = self.nested(parent_id, field)
        self.update(parent_id, {field: [i for i in items if i.id != item_id]})
