"""Single-document stores: the company vision and the strategic context."""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import ValidationError

from signalpm.auth import AuthContext
from signalpm.docstore import DocumentStore, DocumentStoreError
from signalpm.schemas import STRATEGIC_CONTEXT_SECTIONS, Principle, Record, StrategicContext, Vision
from signalpm.utils import generate_id

log = logging.getLogger(__name__)

MAIN_DOC_ID = "main"

S = TypeVar("S", bound=Record)


class SingletonStore(Generic[S]):
    collection: ClassVar[str]
    model: ClassVar[type[Record]]

    def __init__(self, docs: DocumentStore, auth: AuthContext):
        self.docs = docs
        self.auth = auth
        self.record: S | None = None
        self.loading = False
        self.saving = False
        self.error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def subscribe(self) -> None:
        if self._unsubscribe is not None:
            return
        self.loading = True
        self._unsubscribe = self.docs.listen(self.collection, self._on_snapshot, self._on_error)

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, records: list[dict[str, Any]]) -> None:
        main = next((r for r in records if r["id"] == MAIN_DOC_ID), None)
        try:
            self.record = self.model.model_validate(main) if main else None  # type: ignore[assignment]
        except ValidationError as exc:
            log.warning("Ignoring malformed %s document: %s", self.collection, exc)
            self.record = None
        self.loading = False

    def _on_error(self, exc: Exception) -> None:
        log.error("%s subscription error: %s", self.collection, exc)
        self.error = str(exc)
        self.loading = False

    def _save(self, data: dict[str, Any]) -> None:
        self.saving = True
        self.error = None
        try:
            self.docs.set(self.collection, MAIN_DOC_ID, {**data, "updated_by": self.auth.user_id},
                          created_by=self.auth.user_id)
        except DocumentStoreError as exc:
            self.error = str(exc)
            raise
        finally:
            self.saving = False


class VisionStore(SingletonStore[Vision]):
    collection = "vision"
    model = Vision

    def save(self, mission: str = "", vision: str = "", principles: list[Any] | None = None,
             company_url: str = "", core_business_model: str = "") -> None:
        self.auth.require_edit_vision()
        checked = [p if isinstance(p, Principle) else Principle.model_validate(p) for p in principles or []]
        self._save({
            "company_url": company_url,
            "core_business_model": core_business_model,
            "mission": mission,
            "vision": vision,
            "principles": checked,
        })

    def _save_principles(self, principles: list[Principle]) -> None:
        current = self.record
        self.save(
            mission=current.mission if current else "",
            vision=current.vision if current else "",
            company_url=current.company_url if current else "",
            core_business_model=current.core_business_model if current else "",
            principles=principles,
        )

    @property
    def principles(self) -> list[Principle]:
        return sorted(self.record.principles, key=lambda p: p.order) if self.record else []

    def add_principle(self, title: str, description: str = "") -> str:
        existing = self.principles
        principle = Principle(
            id=generate_id(taken=(p.id for p in existing)),
            order=len(existing), title=title, description=description,
        )
        self._save_principles([*existing, principle])
        return principle.id

    def update_principle(self, principle_id: str, title: str, description: str) -> None:
        self._save_principles([
            p.model_copy(update={"title": title, "description": description}) if p.id == principle_id else p
            for p in self.principles
        ])

    def delete_principle(self, principle_id: str) -> None:
        remaining = [p for p in self.principles if p.id != principle_id]
        self._save_principles([p.model_copy(update={"order": i}) for i, p in enumerate(remaining)])

    def reorder_principles(self, principle_ids: list[str]) -> None:
        by_id = {p.id: p for p in self.principles}
        ordered = [by_id[pid] for pid in principle_ids if pid in by_id]
        ordered += [p for p in self.principles if p.id not in principle_ids]
        self._save_principles([p.model_copy(update={"order": i}) for i, p in enumerate(ordered)])


class StrategicContextStore(SingletonStore[StrategicContext]):
    collection = "strategicContext"
    model = StrategicContext

    def save_section(self, section: str, content: str) -> None:
        self.auth.require_edit("edit strategic context")
        if section not in STRATEGIC_CONTEXT_SECTIONS:
            raise ValueError(f"Unknown section: {section!r}")
        self._save({section: content})

    def save_company_context(self, company_context: str) -> None:
        self.auth.require_edit("edit strategic context")
        self._save({"company_context": company_context})

    def section(self, section: str) -> str:
        if self.record is None:
            return ""
        return getattr(self.record, section, "") or ""
