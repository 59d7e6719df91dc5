from __future__ import annotations

from typing import Any

from signalpm.schemas import FOCUS_AREA_STATUSES, FocusArea
from signalpm.stores.base import EntityStore
from signalpm.utils import utcnow

CONFIDENCE_ORDER = {"low": 1, "medium": 2, "high": 3}


class FocusAreaStore(EntityStore[FocusArea]):
    collection = "focusAreas"
    model = FocusArea
    label = "focus area"

    # -- views --------------------------------------------------------------

    @property
    def active(self) -> list[FocusArea]:
        return [fa for fa in self.items if fa.status not in ("archived", "achieved")]

    @property
    def archived(self) -> list[FocusArea]:
        return [fa for fa in self.items if fa.status == "archived"]

    @property
    def achieved(self) -> list[FocusArea]:
        return [fa for fa in self.items if fa.status == "achieved"]

    @property
    def by_status(self) -> dict[str, list[FocusArea]]:
        return {s: [fa for fa in self.items if fa.status == s] for s in FOCUS_AREA_STATUSES}

    # -- mutations ----------------------------------------------------------

    def add_focus_area(
        self,
        title: str,
        problem_statement: str = "",
        confidence_level: str = "medium",
        confidence_rationale: str = "",
        success_criteria: list[str] | None = None,
        **extra: Any,
    ) -> str:
        now = utcnow()
        return self.add({
            **extra,
            "title": title,
            "problem_statement": problem_statement,
            "confidence_level": confidence_level,
            "confidence_rationale": confidence_rationale,
            "success_criteria": success_criteria or [],
            "status": "active",
            "confidence_trend": "stable",
            "confidence_history": [{
                "level": confidence_level, "rationale": confidence_rationale,
                "changed_at": now, "changed_by": self.auth.user_id,
            }],
            "progress_percentage": 0,
            "status_history": [{
                "status": "active", "changed_at": now,
                "changed_by": self.auth.user_id, "reason": "Initial creation",
            }],
        })

    def update_confidence(self, focus_area_id: str, level: str, rationale: str) -> None:
        """Record a new confidence level; the trend compares it with the previous one."""
        if level not in CONFIDENCE_ORDER:
            raise ValueError(f"Unknown confidence level: {level!r}")
        fa = self.require(focus_area_id)
        history = [*fa.confidence_history, {
            "level": level, "rationale": rationale,
            "changed_at": utcnow(), "changed_by": self.auth.user_id,
        }]
        trend = "stable"
        if len(history) >= 2:
            current = CONFIDENCE_ORDER[level]
            previous = CONFIDENCE_ORDER[fa.confidence_level]
            if current > previous:
                trend = "improving"
            elif current < previous:
                trend = "declining"
        self.update(focus_area_id, {
            "confidence_level": level,
            "confidence_rationale": rationale,
            "confidence_trend": trend,
            "confidence_history": history,
        })

    def update_status(self, focus_area_id: str, status: str, reason: str | None = None) -> None:
        fa = self.require(focus_area_id)
        history = [*fa.status_history, {
            "status": status, "changed_at": utcnow(),
            "changed_by": self.auth.user_id, "reason": reason,
        }]
        self.update(focus_area_id, {"status": status, "status_history": history})

    def update_progress(self, focus_area_id: str, percentage: int) -> None:
        self.update(focus_area_id, {"progress_percentage": min(100, max(0, int(percentage)))})

    def archive(self, focus_area_id: str, reason: str | None = None) -> None:
        self.update_status(focus_area_id, "archived", reason or "Archived")

    def reactivate(self, focus_area_id: str) -> None:
        """Return an archived focus area to the status it had before archiving."""
        fa = self.require(focus_area_id)
        previous = next(
            (h.status for h in reversed(fa.status_history) if h.status != "archived"),
            "active",
        )
        self.update_status(focus_area_id, previous, "Reactivated")
