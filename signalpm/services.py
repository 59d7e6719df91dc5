"""Workspace composition and shared listing helpers for the API."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from signalpm.auth import AuthContext
from signalpm.docstore import DocumentStore
from signalpm.related import CrossReferences
from signalpm.stores import (
    ArchetypeStore,
    BlockerStore,
    ChangelogStore,
    DecisionStore,
    DesignPartnerStore,
    EntityStore,
    FeedbackStore,
    FocusAreaStore,
    HypothesisStore,
    IdeaStore,
    JourneyMapStore,
    KnowledgeBaseStore,
    ObjectiveStore,
    StrategicContextStore,
    VisionStore,
)

log = logging.getLogger(__name__)


class Workspace:
    """Every store for one caller, over one document store.

    Stores are independent; the only wiring is the discovery store, which
    writes auto-generated decisions and reads focus-area titles.
    """

    def __init__(self, docs: DocumentStore, auth: AuthContext):
        self.docs = docs
        self.auth = auth
        self.vision = VisionStore(docs, auth)
        self.strategic_context = StrategicContextStore(docs, auth)
        self.focus_areas = FocusAreaStore(docs, auth)
        self.decisions = DecisionStore(docs, auth)
        self.hypotheses = HypothesisStore(docs, auth, decisions=self.decisions, focus_areas=self.focus_areas)
        self.feedback = FeedbackStore(docs, auth)
        self.objectives = ObjectiveStore(docs, auth)
        self.archetypes = ArchetypeStore(docs, auth)
        self.design_partners = DesignPartnerStore(docs, auth)
        self.ideas = IdeaStore(docs, auth)
        self.journey_maps = JourneyMapStore(docs, auth)
        self.documents = KnowledgeBaseStore(docs, auth)
        self.changelog = ChangelogStore(docs, auth)
        self.blockers = BlockerStore(docs, auth)
        self.related = CrossReferences(self)

    @property
    def entity_stores(self) -> list[EntityStore[Any]]:
        return [
            self.focus_areas, self.decisions, self.hypotheses, self.feedback, self.objectives,
            self.archetypes, self.design_partners, self.ideas, self.journey_maps,
            self.documents, self.changelog, self.blockers,
        ]

    def open(self) -> Workspace:
        for store in (self.vision, self.strategic_context, *self.entity_stores):
            store.subscribe()
        log.debug("Workspace opened for %s", self.auth.user_id or "anonymous")
        return self

    def close(self) -> None:
        for store in (self.vision, self.strategic_context, *self.entity_stores):
            store.unsubscribe()

    def __enter__(self) -> Workspace:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Filtering and sorting
# ---------------------------------------------------------------------------


def filter_and_sort(
    items: list[dict], *, status=None, search=None, search_fields=("title",),
    sort_by="created_at", sort_dir="desc",
) -> list[dict]:
    if status:
        ss = {s.strip().lower() for s in status.split(",")}
        items = [i for i in items if (i.get("status") or "") in ss]
    if search:
        q = search.lower()
        items = [i for i in items if any(q in str(i.get(f) or "").lower() for f in search_fields)]

    def sort_key(item: dict):
        value = item[sort_by]
        return value.lower() if isinstance(value, str) else value

    # missing values go last either way
    present = [i for i in items if i.get(sort_by) is not None]
    missing = [i for i in items if i.get(sort_by) is None]
    present.sort(key=sort_key, reverse=(sort_dir == "desc"))
    return present + missing


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def updates_from(body: BaseModel) -> dict[str, Any]:
    """Fields the client actually sent; an explicit null clears a link."""
    return body.model_dump(exclude_unset=True)


def dump(records: list[BaseModel]) -> list[dict[str, Any]]:
    return [r.model_dump(mode="json") for r in records]
