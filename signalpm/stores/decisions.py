from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from signalpm.docstore import SERVER_TIMESTAMP
from signalpm.schemas import Decision
from signalpm.stores.base import EntityStore
from signalpm.utils import generate_id

CATEGORY_BADGES = {
    "product": "badge-blue",
    "technical": "badge-purple",
    "process": "badge-yellow",
    "strategy": "badge-green",
}
STATUS_BADGES = {
    "proposed": "badge-yellow",
    "decided": "badge-green",
    "revisited": "badge-blue",
}


def category_badge_class(category: str) -> str:
    return CATEGORY_BADGES.get(category, "badge-gray")


def status_badge_class(status: str) -> str:
    return STATUS_BADGES.get(status, "badge-gray")


class DecisionStore(EntityStore[Decision]):
    collection = "decisions"
    model = Decision
    label = "decision"

    @property
    def proposed(self) -> list[Decision]:
        return self.where(status="proposed")

    @property
    def decided(self) -> list[Decision]:
        return self.where(status="decided")

    @property
    def revisited(self) -> list[Decision]:
        return self.where(status="revisited")

    def by_category(self, category: str) -> list[Decision]:
        return self.where(category=category)

    # -- mutations ----------------------------------------------------------

    def add_decision(
        self,
        title: str,
        context: str = "",
        category: str = "product",
        owner: str = "",
        options: Iterable[dict[str, Any]] = (),
        **extra: Any,
    ) -> str:
        built: list[dict[str, Any]] = []
        for option in options:
            option_id = generate_id(taken=(o["id"] for o in built), prefix="opt")
            built.append({**option, "id": option_id, "selected": False})
        return self.add({
            **extra,
            "title": title,
            "context": context,
            "category": category,
            "owner": owner,
            "options": built,
            "status": "proposed",
            "rationale": "",
        })

    def make_decision(self, decision_id: str, option_id: str, rationale: str) -> None:
        """Select exactly one option and mark the decision decided."""
        decision = self.require(decision_id)
        if not any(o.id == option_id for o in decision.options):
            raise ValueError(f"Unknown option: {option_id}")
        self.update(decision_id, {
            "status": "decided",
            "options": [{**o.model_dump(), "selected": o.id == option_id} for o in decision.options],
            "rationale": rationale,
            "decided_at": SERVER_TIMESTAMP,
        })

    def revisit(self, decision_id: str) -> None:
        self.update(decision_id, {"status": "revisited"})

    def reopen(self, decision_id: str) -> None:
        self.update(decision_id, {"status": "proposed"})

    def update_implementation(self, decision_id: str, status: str, **fields: Any) -> None:
        """Track what happened after the decision; start and completion dates are stamped once."""
        decision = self.require(decision_id)
        data: dict[str, Any] = {**fields, "implementation_status": status}
        if status == "in-progress" and decision.implementation_start_date is None:
            data["implementation_start_date"] = SERVER_TIMESTAMP
        if status == "completed" and decision.implementation_completed_date is None:
            data["implementation_completed_date"] = SERVER_TIMESTAMP
        self.update(decision_id, data)

    # -- options ------------------------------------------------------------

    def add_option(self, decision_id: str, title: str, description: str = "",
                   pros: list[str] | None = None, cons: list[str] | None = None) -> str:
        return self.add_nested(decision_id, "options", {
            "title": title, "description": description,
            "pros": pros or [], "cons": cons or [], "selected": False,
        }, prefix="opt")

    def update_option(self, decision_id: str, option_id: str, **changes: Any) -> None:
        self.update_nested(decision_id, "options", option_id, changes)

    def delete_option(self, decision_id: str, option_id: str) -> None:
        self.remove_nested(decision_id, "options", option_id)
