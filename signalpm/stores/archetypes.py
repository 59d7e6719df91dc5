"""Customer archetypes with nested discovery hypotheses and interview material.

Every update recomputes three derived fields on the merged record:
``confidence_score``, ``readiness_score`` and ``bs_flags``.
"""
from __future__ import annotations

from typing import Any

from signalpm.docstore import SERVER_TIMESTAMP
from signalpm.schemas import HYPOTHESIS_CATEGORIES, STAKEHOLDER_ROLES, CustomerArchetype
from signalpm.stores.base import EntityStore
from signalpm.utils import round_half_up, utcnow

DEFAULT_INTERVIEW_TARGET = 8

BS_WORDS = (
    "innovative", "seamless", "revolutionize", "cutting-edge", "best-in-class",
    "world-class", "game-changing", "disruptive", "synergy", "leverage",
    "paradigm", "holistic", "scalable", "robust", "next-generation",
    "transformative", "empower", "streamline",
)


def confidence_score(archetype: CustomerArchetype) -> int:
    hypotheses = [h for cat in HYPOTHESIS_CATEGORIES for h in getattr(archetype, cat)]
    if not hypotheses:
        return 0
    validated = sum(1 for h in hypotheses if h.status == "validated")
    partial = sum(1 for h in hypotheses if h.status == "partially_validated")
    return round_half_up((validated + partial * 0.5) / len(hypotheses) * 100)


def readiness_score(archetype: CustomerArchetype) -> int:
    target = archetype.interview_target or DEFAULT_INTERVIEW_TARGET
    return min(100, round_half_up(len(archetype.interview_notes) / target * 100))


def detect_bs_flags(archetype: CustomerArchetype) -> list[str]:
    """Buzzwords found in the archetype's free text, in BS_WORDS order."""
    text = " ".join([
        archetype.problem_statement,
        archetype.daily_reality,
        archetype.decision_process,
        *(h.content for h in archetype.specific_pain_points),
        *(h.content for h in archetype.primary_goals),
        *(v.proposition for v in archetype.value_propositions),
    ]).lower()
    return [w for w in BS_WORDS if w in text]


def _check_category(category: str) -> None:
    if category not in HYPOTHESIS_CATEGORIES:
        raise ValueError(f"Unknown hypothesis category: {category!r}")


class ArchetypeStore(EntityStore[CustomerArchetype]):
    collection = "customerArchetypes"
    model = CustomerArchetype
    label = "archetype"

    # -- views --------------------------------------------------------------

    @property
    def draft(self) -> list[CustomerArchetype]:
        return self.where(status="draft")

    @property
    def active(self) -> list[CustomerArchetype]:
        return self.where(status="active")

    @property
    def validated(self) -> list[CustomerArchetype]:
        return self.where(status="validated")

    @property
    def archived(self) -> list[CustomerArchetype]:
        return self.where(status="archived")

    @property
    def by_role(self) -> dict[str, list[CustomerArchetype]]:
        return {role: self.where(stakeholder_role=role) for role in STAKEHOLDER_ROLES}

    # -- core mutations -----------------------------------------------------

    def defaults(self) -> dict[str, Any]:
        return {
            "phase": "setup",
            "status": "draft",
            "budget_authority": "hypothesis",
            "interview_target": DEFAULT_INTERVIEW_TARGET,
            "confidence_score": 0,
            "readiness_score": 0,
            "bs_flags": [],
        }

    def add_archetype(self, name: str, stakeholder_role: str = "user", **extra: Any) -> str:
        return self.add({**extra, "name": name, "stakeholder_role": stakeholder_role})

    def update(self, entity_id: str, data: dict[str, Any]) -> None:
        current = self.get(entity_id)
        if current is not None:
            checked = {
                k: v for k, v in data.items()
                if v is not SERVER_TIMESTAMP and k in CustomerArchetype.model_fields
            }
            merged = CustomerArchetype.model_validate({**current.model_dump(), **checked})
            data = {
                **data,
                "confidence_score": confidence_score(merged),
                "readiness_score": readiness_score(merged),
                "bs_flags": detect_bs_flags(merged),
            }
        super().update(entity_id, data)

    def update_phase(self, archetype_id: str, phase: str) -> None:
        self.update(archetype_id, {"phase": phase})

    def update_status(self, archetype_id: str, status: str) -> None:
        self.update(archetype_id, {"status": status})

    # -- nested hypotheses ----------------------------------------------------

    def add_hypothesis(self, archetype_id: str, category: str, content: str) -> str:
        _check_category(category)
        return self.add_nested(archetype_id, category, {"content": content, "status": "hypothesis"})

    def update_hypothesis_status(
        self, archetype_id: str, category: str, hypothesis_id: str,
        status: str, evidence: str | None = None,
    ) -> None:
        _check_category(category)
        self.update_nested(archetype_id, category, hypothesis_id, {
            "status": status,
            "evidence": evidence,
            "validated_at": utcnow() if status == "validated" else None,
        })

    def remove_hypothesis(self, archetype_id: str, category: str, hypothesis_id: str) -> None:
        _check_category(category)
        self.remove_nested(archetype_id, category, hypothesis_id)

    # -- interview questions and notes ---------------------------------------

    def add_interview_question(
        self, archetype_id: str, question: str, purpose: str = "", hypothesis_id: str | None = None,
    ) -> str:
        return self.add_nested(archetype_id, "interview_questions", {
            "question": question, "purpose": purpose, "hypothesis_id": hypothesis_id,
        })

    def remove_interview_question(self, archetype_id: str, question_id: str) -> None:
        self.remove_nested(archetype_id, "interview_questions", question_id)

    def add_interview_note(self, archetype_id: str, **note: Any) -> str:
        return self.add_nested(archetype_id, "interview_notes", {**note, "created_at": utcnow()})

    def update_interview_note(self, archetype_id: str, note_id: str, **changes: Any) -> None:
        self.update_nested(archetype_id, "interview_notes", note_id, changes)

    # -- value propositions ---------------------------------------------------

    def add_value_proposition(
        self, archetype_id: str, proposition: str, relevance_score: int = 3, pain_addressed: str = "",
    ) -> str:
        return self.add_nested(archetype_id, "value_propositions", {
            "proposition": proposition, "relevance_score": relevance_score,
            "pain_addressed": pain_addressed, "status": "hypothesis",
        })

    def update_value_proposition(self, archetype_id: str, vp_id: str, **changes: Any) -> None:
        self.update_nested(archetype_id, "value_propositions", vp_id, changes)

    def remove_value_proposition(self, archetype_id: str, vp_id: str) -> None:
        self.remove_nested(archetype_id, "value_propositions", vp_id)
