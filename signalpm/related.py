"""Cross-references between entities.

Everything here is recomputed from the stores' current ``items`` on every
call. Links are plain id fields (``hypothesis.focus_area_id``) or id lists
(``objective.focus_area_ids``); nothing cascades on delete, so a reference
may point at a record that no longer exists. Such references are skipped.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from signalpm.services import Workspace

log = logging.getLogger(__name__)

# entity type -> (workspace attribute, title field, view path)
ENTITY_TYPES: dict[str, tuple[str, str, str]] = {
    "archetype": ("archetypes", "name", "/customer-archetypes"),
    "focus-area": ("focus_areas", "title", "/focus-areas"),
    "hypothesis": ("hypotheses", "belief", "/discovery"),
    "feedback": ("feedback", "content", "/discovery"),
    "idea": ("ideas", "title", "/idea-hopper"),
    "decision": ("decisions", "title", "/decisions"),
    "objective": ("objectives", "title", "/objectives"),
    "journey-map": ("journey_maps", "title", "/journey-maps"),
    "document": ("documents", "name", "/documents"),
    "changelog": ("changelog", "title", "/delivery"),
    "blocker": ("blockers", "title", "/delivery"),
    "design-partner": ("design_partners", "name", "/design-partners"),
}

RELATIONS: dict[str, tuple[str, ...]] = {
    "archetype": ("focus_areas", "hypotheses", "feedback", "ideas", "journey_maps",
                  "design_partners", "documents"),
    "focus-area": ("archetypes", "hypotheses", "ideas", "decisions", "objectives",
                   "documents", "changelog", "blockers"),
    "hypothesis": ("focus_area", "archetype", "decisions", "changelog"),
    "idea": ("focus_area", "archetype", "journey_maps"),
    "decision": ("focus_area", "hypotheses", "changelog"),
    "objective": ("focus_areas",),
    "journey-map": ("idea", "archetype"),
    "design-partner": ("archetype",),
    "changelog": ("focus_area", "hypotheses"),
    "blocker": ("focus_area",),
}

FEEDBACK_TITLE_LENGTH = 50


@dataclass(frozen=True)
class RelatedItem:
    id: str
    type: str
    title: str
    status: str | None = None
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AlignmentWarning:
    type: str  # "warning" | "info"
    message: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count > 1 else ''}"


Linked = Iterator[tuple[str, RelatedItem]]


class CrossReferences:
    """Related items, connection counts and alignment checks over a workspace."""

    def __init__(self, workspace: Workspace):
        self.ws = workspace
        self._handlers: dict[str, Callable[[str], Linked]] = {
            "archetype": self._related_to_archetype,
            "focus-area": self._related_to_focus_area,
            "hypothesis": self._related_to_hypothesis,
            "idea": self._related_to_idea,
            "decision": self._related_to_decision,
            "objective": self._related_to_objective,
            "journey-map": self._related_to_journey_map,
            "design-partner": self._related_to_design_partner,
            "changelog": self._related_to_changelog,
            "blocker": self._related_to_blocker,
        }

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _items(self, entity_type: str) -> list[Any]:
        attr = ENTITY_TYPES[entity_type][0]
        return getattr(self.ws, attr).items

    def _find(self, entity_type: str, entity_id: str | None) -> Any | None:
        if not entity_id:
            return None
        return next((r for r in self._items(entity_type) if r.id == entity_id), None)

    def _item(self, entity_type: str, record: Any) -> RelatedItem:
        _, title_field, path = ENTITY_TYPES[entity_type]
        title = getattr(record, title_field) or ""
        if entity_type == "feedback":
            title = title[:FEEDBACK_TITLE_LENGTH] + "..."
        return RelatedItem(
            id=record.id, type=entity_type, title=title,
            status=getattr(record, "status", None), path=path,
        )

    def _one(self, relation: str, entity_type: str, entity_id: str | None) -> Linked:
        record = self._find(entity_type, entity_id)
        if record is not None:
            yield relation, self._item(entity_type, record)

    def _many(self, relation: str, entity_type: str, ids: list[str]) -> Linked:
        for entity_id in ids:
            yield from self._one(relation, entity_type, entity_id)

    def _scan(self, relation: str, entity_type: str, match: Callable[[Any], bool]) -> Linked:
        for record in self._items(entity_type):
            if match(record):
                yield relation, self._item(entity_type, record)

    def locate(self, entity_id: str) -> str | None:
        """Entity type of the first store holding ``entity_id``."""
        for entity_type in ENTITY_TYPES:
            if self._find(entity_type, entity_id) is not None:
                return entity_type
        return None

    def resolve_title(self, entity_type: str, entity_id: str | None) -> str | None:
        if entity_type not in ENTITY_TYPES:
            return None
        record = self._find(entity_type, entity_id)
        if record is None:
            return None
        return self._item(entity_type, record).title

    # ------------------------------------------------------------------
    # Per-type relations
    # ------------------------------------------------------------------

    def _related_to_archetype(self, archetype_id: str) -> Linked:
        archetype = self._find("archetype", archetype_id)
        seen: set[str] = set()
        linked = archetype.related_focus_area_ids if archetype else []
        for relation, item in self._many("focus_areas", "focus-area", linked):
            seen.add(item.id)
            yield relation, item
        for relation, item in self._scan("focus_areas", "focus-area",
                                         lambda f: archetype_id in f.target_archetype_ids):
            if item.id not in seen:
                seen.add(item.id)
                yield relation, item
        yield from self._scan("hypotheses", "hypothesis", lambda h: h.archetype_id == archetype_id)
        yield from self._scan("feedback", "feedback", lambda f: f.archetype_id == archetype_id)
        yield from self._scan("ideas", "idea", lambda i: i.target_archetype_id == archetype_id)
        yield from self._scan("journey_maps", "journey-map", lambda j: j.archetype_id == archetype_id)
        yield from self._scan("design_partners", "design-partner", lambda p: p.archetype_id == archetype_id)
        yield from self._scan("documents", "document", lambda d: archetype_id in d.archetype_ids)

    def _related_to_focus_area(self, focus_area_id: str) -> Linked:
        focus_area = self._find("focus-area", focus_area_id)
        seen: set[str] = set()
        for relation, item in self._scan("archetypes", "archetype",
                                         lambda a: focus_area_id in a.related_focus_area_ids):
            seen.add(item.id)
            yield relation, item
        targeted = focus_area.target_archetype_ids if focus_area else []
        for relation, item in self._many("archetypes", "archetype", targeted):
            if item.id not in seen:
                seen.add(item.id)
                yield relation, item
        yield from self._scan("hypotheses", "hypothesis", lambda h: h.focus_area_id == focus_area_id)
        yield from self._scan("ideas", "idea", lambda i: i.focus_area_id == focus_area_id)
        yield from self._scan("decisions", "decision", lambda d: d.focus_area_id == focus_area_id)
        yield from self._scan("objectives", "objective", lambda o: focus_area_id in o.focus_area_ids)
        yield from self._scan("documents", "document", lambda d: focus_area_id in d.focus_area_ids)
        yield from self._scan("changelog", "changelog", lambda c: c.focus_area_id == focus_area_id)
        yield from self._scan("blockers", "blocker", lambda b: b.focus_area_id == focus_area_id)

    def _related_to_hypothesis(self, hypothesis_id: str) -> Linked:
        hypothesis = self._find("hypothesis", hypothesis_id)
        if hypothesis is not None:
            yield from self._one("focus_area", "focus-area", hypothesis.focus_area_id)
            yield from self._one("archetype", "archetype", hypothesis.archetype_id)
        yield from self._scan("decisions", "decision", lambda d: hypothesis_id in d.related_hypothesis_ids)
        yield from self._scan("changelog", "changelog", lambda c: hypothesis_id in c.validated_hypothesis_ids)

    def _related_to_idea(self, idea_id: str) -> Linked:
        idea = self._find("idea", idea_id)
        if idea is not None:
            yield from self._one("focus_area", "focus-area", idea.focus_area_id)
            yield from self._one("archetype", "archetype", idea.target_archetype_id)
        yield from self._scan("journey_maps", "journey-map", lambda j: j.idea_id == idea_id)

    def _related_to_decision(self, decision_id: str) -> Linked:
        decision = self._find("decision", decision_id)
        if decision is None:
            return
        yield from self._one("focus_area", "focus-area", decision.focus_area_id)
        yield from self._many("hypotheses", "hypothesis", decision.related_hypothesis_ids)
        yield from self._many("changelog", "changelog", decision.changelog_ids)

    def _related_to_objective(self, objective_id: str) -> Linked:
        objective = self._find("objective", objective_id)
        if objective is not None:
            yield from self._many("focus_areas", "focus-area", objective.focus_area_ids)

    def _related_to_journey_map(self, map_id: str) -> Linked:
        journey_map = self._find("journey-map", map_id)
        if journey_map is not None:
            yield from self._one("idea", "idea", journey_map.idea_id)
            yield from self._one("archetype", "archetype", journey_map.archetype_id)

    def _related_to_design_partner(self, partner_id: str) -> Linked:
        partner = self._find("design-partner", partner_id)
        if partner is not None:
            yield from self._one("archetype", "archetype", partner.archetype_id)

    def _related_to_changelog(self, entry_id: str) -> Linked:
        entry = self._find("changelog", entry_id)
        if entry is not None:
            yield from self._one("focus_area", "focus-area", entry.focus_area_id)
            yield from self._many("hypotheses", "hypothesis", entry.validated_hypothesis_ids)

    def _related_to_blocker(self, blocker_id: str) -> Linked:
        blocker = self._find("blocker", blocker_id)
        if blocker is not None:
            yield from self._one("focus_area", "focus-area", blocker.focus_area_id)

    def _linked(self, entity_id: str, entity_type: str | None) -> tuple[str | None, list[tuple[str, RelatedItem]]]:
        entity_type = entity_type or self.locate(entity_id)
        handler = self._handlers.get(entity_type) if entity_type else None
        if handler is None:
            return entity_type, []
        return entity_type, list(handler(entity_id))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_related_items(self, entity_id: str, entity_type: str | None = None) -> list[RelatedItem]:
        """Display tuples for every record linked to ``entity_id``.

        ``entity_type`` is located by scanning the stores when omitted; an
        unknown id, or a type with no relations (feedback, documents), gives
        an empty list.
        """
        _, linked = self._linked(entity_id, entity_type)
        return [item for _, item in linked]

    def get_connection_counts(self, entity_id: str, entity_type: str | None = None) -> dict[str, int]:
        """Number of linked records per relation name, zero-filled."""
        entity_type, linked = self._linked(entity_id, entity_type)
        if entity_type not in RELATIONS:
            return {}
        counts = dict.fromkeys(RELATIONS[entity_type], 0)
        for relation, _ in linked:
            counts[relation] += 1
        return counts

    def get_alignment_warnings(self) -> list[AlignmentWarning]:
        warnings: list[AlignmentWarning] = []

        n = sum(1 for f in self.ws.focus_areas.active if not f.target_archetype_ids)
        if n:
            warnings.append(AlignmentWarning(
                "warning", f"{_plural(n, 'focus area')} without target customers", "/focus-areas"))

        n = sum(1 for a in self.ws.archetypes.active if not a.related_focus_area_ids)
        if n:
            warnings.append(AlignmentWarning(
                "warning", f"{_plural(n, 'archetype')} not linked to problems", "/customer-archetypes"))

        n = sum(1 for h in self.ws.hypotheses.active if not h.archetype_id)
        if n:
            noun = "hypotheses" if n > 1 else "hypothesis"
            warnings.append(AlignmentWarning("info", f"{n} {noun} not linked to customers", "/discovery"))

        n = sum(1 for o in self.ws.objectives.active if not o.focus_area_ids)
        if n:
            warnings.append(AlignmentWarning(
                "warning", f"{_plural(n, 'objective')} not aligned to focus areas", "/objectives"))

        n = sum(1 for d in self.ws.decisions.proposed if not d.related_hypothesis_ids)
        if n:
            warnings.append(AlignmentWarning(
                "info", f"{_plural(n, 'proposed decision')} without linked evidence", "/decisions"))

        log.debug("Alignment check produced %d warnings", len(warnings))
        return warnings

    def get_link_coverage(self) -> dict[str, int]:
        """How many records of each kind carry at least one link."""
        ws = self.ws
        return {
            "archetypes_with_focus_areas": sum(1 for a in ws.archetypes.items if a.related_focus_area_ids),
            "focus_areas_with_archetypes": sum(1 for f in ws.focus_areas.items if f.target_archetype_ids),
            "hypotheses_with_archetypes": sum(1 for h in ws.hypotheses.items if h.archetype_id),
            "ideas_with_archetypes": sum(1 for i in ws.ideas.items if i.target_archetype_id),
            "objectives_with_focus_areas": sum(1 for o in ws.objectives.items if o.focus_area_ids),
            "decisions_with_evidence": sum(1 for d in ws.decisions.items if d.related_hypothesis_ids),
            "journey_maps_with_archetypes": sum(1 for j in ws.journey_maps.items if j.archetype_id),
        }
