"""Discovery hub: product hypotheses with evidence, plus the legacy feedback log.

Resolving a hypothesis (validated or invalidated) records an ``[Auto]`` entry
in the decisions log so the learning stays traceable.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from signalpm.auth import AuthContext
from signalpm.docstore import SERVER_TIMESTAMP, DocumentStore
from signalpm.schemas import Feedback, Hypothesis, HypothesisEvidence
from signalpm.stores.base import EntityStore
from signalpm.stores.decisions import DecisionStore
from signalpm.stores.focus_areas import FocusAreaStore
from signalpm.utils import generate_id, utcnow

log = logging.getLogger(__name__)

STRENGTH_SCORES = {"weak": 1, "moderate": 2, "strong": 3}

_VALIDATED_OPTIONS = [
    {
        "title": "Proceed with implementation",
        "description": "The hypothesis was validated. Consider moving forward with the related features or changes.",
        "pros": ["Evidence supports the approach", "Reduces risk of building the wrong thing"],
        "cons": [],
    },
    {
        "title": "Gather more evidence",
        "description": "More data could strengthen the case before a major investment.",
        "pros": ["Higher confidence before investment"],
        "cons": ["Delays potential value delivery"],
    },
]
_INVALIDATED_OPTIONS = [
    {
        "title": "Pivot approach",
        "description": "The hypothesis was invalidated. Consider alternative approaches to the problem.",
        "pros": ["Avoids investing in the wrong direction", "Opens up exploration of new ideas"],
        "cons": ["Requires new hypothesis development"],
    },
    {
        "title": "Archive and move on",
        "description": "Document the learning and focus resources elsewhere.",
        "pros": ["Frees up resources", "Creates documented learning"],
        "cons": ["Problem may remain unsolved"],
    },
]


def evidence_strength(evidence: Sequence[HypothesisEvidence]) -> str:
    """Mean strength score plus a quantity bonus of 0.1 per item, capped at 0.5."""
    if not evidence:
        return "weak"
    avg = sum(STRENGTH_SCORES[e.strength] for e in evidence) / len(evidence)
    score = avg + min(len(evidence) * 0.1, 0.5)
    if score >= 2.5:
        return "strong"
    if score >= 1.5:
        return "moderate"
    return "weak"


def auto_decision_context(hypothesis: Hypothesis, status: str, result: str, focus_area_title: str) -> str:
    label = "Validated" if status == "validated" else "Invalidated"
    parts = [
        f"**Status:** {label}",
        "",
        f"**Original Belief:** {hypothesis.belief}",
        "",
        f"**Test Method:** {hypothesis.test}",
    ]
    if result:
        parts += ["", f"**Result:** {result}"]
    if focus_area_title:
        parts += ["", f"**Related Focus Area:** {focus_area_title}"]
    if hypothesis.risks:
        parts += ["", f"**Risks Tested:** {', '.join(hypothesis.risks)}"]
    parts += ["", "---", "*Generated when the hypothesis was resolved in the Discovery Hub.*"]
    return "\n".join(parts)


class HypothesisStore(EntityStore[Hypothesis]):
    collection = "hypotheses"
    model = Hypothesis
    label = "hypothesis"

    def __init__(
        self,
        docs: DocumentStore,
        auth: AuthContext,
        decisions: DecisionStore | None = None,
        focus_areas: FocusAreaStore | None = None,
    ):
        super().__init__(docs, auth)
        self.decisions = decisions
        self.focus_areas = focus_areas

    # -- views --------------------------------------------------------------

    @property
    def active(self) -> list[Hypothesis]:
        return self.where(status="active")

    @property
    def validated(self) -> list[Hypothesis]:
        return self.where(status="validated")

    @property
    def invalidated(self) -> list[Hypothesis]:
        return self.where(status="invalidated")

    @property
    def parked(self) -> list[Hypothesis]:
        return self.where(status="parked")

    def counts_for_focus_area(self, focus_area_id: str) -> dict[str, int]:
        linked = self.where(focus_area_id=focus_area_id)
        return {
            "total": len(linked),
            "active": sum(1 for h in linked if h.status == "active"),
            "validated": sum(1 for h in linked if h.status == "validated"),
            "invalidated": sum(1 for h in linked if h.status == "invalidated"),
        }

    # -- mutations ----------------------------------------------------------

    def add_hypothesis(self, belief: str, test: str = "", risks: list[str] | None = None, **extra: Any) -> str:
        return self.add({**extra, "belief": belief, "test": test, "risks": risks or [],
                         "result": "", "status": "active"})

    def update_status(
        self,
        hypothesis_id: str,
        status: str,
        result: str | None = None,
        auto_generate_decision: bool = True,
    ) -> str | None:
        """Set the status; returns the id of the auto-generated decision, if any."""
        self.auth.require_edit("update hypotheses")
        hypothesis = self.require(hypothesis_id)
        data: dict[str, Any] = {"status": status}
        if result is not None:
            data["result"] = result
        if status == "validated":
            data["validated_at"] = SERVER_TIMESTAMP
        elif status == "invalidated":
            data["invalidated_at"] = SERVER_TIMESTAMP
        self.update(hypothesis_id, data)

        if not auto_generate_decision or status not in ("validated", "invalidated"):
            return None
        if self.decisions is None:
            log.warning("No decision store wired; skipping auto decision for %s", hypothesis_id)
            return None
        return self._record_decision(hypothesis, status, result)

    def _record_decision(self, hypothesis: Hypothesis, status: str, result: str | None) -> str:
        focus_area_title = ""
        if hypothesis.focus_area_id and self.focus_areas is not None:
            fa = self.focus_areas.get(hypothesis.focus_area_id)
            focus_area_title = fa.title if fa else ""
        label = "Validated" if status == "validated" else "Invalidated"
        belief = hypothesis.belief
        title = f"[Auto] Hypothesis {label}: {belief[:60]}{'...' if len(belief) > 60 else ''}"
        owner = self.auth.user.display_name if self.auth.user and self.auth.user.display_name else "System"
        return self.decisions.add_decision(  # type: ignore[union-attr]
            title=title,
            context=auto_decision_context(hypothesis, status, result or hypothesis.result, focus_area_title),
            category="product",
            owner=owner,
            options=_VALIDATED_OPTIONS if status == "validated" else _INVALIDATED_OPTIONS,
            related_hypothesis_ids=[hypothesis.id],
            focus_area_id=hypothesis.focus_area_id,
            auto_generated=True,
            source_hypothesis_id=hypothesis.id,
        )

    def update_priority(self, hypothesis_id: str, priority: str) -> None:
        self.update(hypothesis_id, {"priority": priority})

    def update_expected_impact(self, hypothesis_id: str, expected_impact: str) -> None:
        self.update(hypothesis_id, {"expected_impact": expected_impact})

    # -- evidence -----------------------------------------------------------

    def _write_evidence(self, hypothesis_id: str, evidence: list[Any]) -> None:
        checked = [e if isinstance(e, HypothesisEvidence) else HypothesisEvidence.model_validate(e)
                   for e in evidence]
        self.update(hypothesis_id, {
            "evidence": checked,
            "overall_evidence_strength": evidence_strength(checked),
        })

    def add_evidence(self, hypothesis_id: str, evidence_type: str, description: str,
                     strength: str = "moderate", **extra: Any) -> str:
        self.auth.require_edit("add evidence")
        items = self.nested(hypothesis_id, "evidence")
        evidence_id = generate_id(taken=(e.id for e in items))
        self._write_evidence(hypothesis_id, [*items, {
            **extra, "id": evidence_id, "type": evidence_type, "description": description,
            "strength": strength, "created_at": utcnow(), "created_by": self.auth.user_id,
        }])
        return evidence_id

    def update_evidence(self, hypothesis_id: str, evidence_id: str, **changes: Any) -> None:
        self.auth.require_edit("update evidence")
        items = self.nested(hypothesis_id, "evidence")
        self._write_evidence(hypothesis_id, [
            {**e.model_dump(), **changes} if e.id == evidence_id else e for e in items
        ])

    def remove_evidence(self, hypothesis_id: str, evidence_id: str) -> None:
        self.auth.require_edit("remove evidence")
        items = self.nested(hypothesis_id, "evidence")
        self._write_evidence(hypothesis_id, [e for e in items if e.id != evidence_id])


class FeedbackStore(EntityStore[Feedback]):
    collection = "feedback"
    model = Feedback
    label = "feedback"

    def add_feedback(self, content: str, source: str = "", theme: str = "", **extra: Any) -> str:
        return self.add({**extra, "content": content, "source": source, "theme": theme})

    def for_hypothesis(self, hypothesis_id: str) -> list[Feedback]:
        return self.where(hypothesis_id=hypothesis_id)
