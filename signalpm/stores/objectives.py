from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from signalpm.schemas import Objective
from signalpm.stores.base import EntityStore
from signalpm.utils import generate_id, round_half_up

KEY_RESULT_BADGES = {
    "on_track": "badge-green",
    "at_risk": "badge-yellow",
    "behind": "badge-red",
    "completed": "badge-blue",
}


def objective_progress(objective: Objective) -> int:
    """Mean key-result completion, each capped at 100; 0 when there are none."""
    if not objective.key_results:
        return 0
    total = sum(
        min(kr.current / kr.target * 100 if kr.target > 0 else 0, 100)
        for kr in objective.key_results
    )
    return round_half_up(total / len(objective.key_results))


def key_result_status_class(status: str) -> str:
    return KEY_RESULT_BADGES.get(status, "badge-gray")


class ObjectiveStore(EntityStore[Objective]):
    collection = "objectives"
    model = Objective
    label = "objective"

    @property
    def active(self) -> list[Objective]:
        return self.where(status="active")

    @property
    def completed(self) -> list[Objective]:
        return self.where(status="completed")

    @property
    def archived(self) -> list[Objective]:
        return self.where(status="archived")

    @property
    def quarters(self) -> list[str]:
        return sorted({o.quarter for o in self.items}, reverse=True)

    def by_quarter(self, quarter: str) -> list[Objective]:
        return self.where(quarter=quarter)

    # -- mutations ----------------------------------------------------------

    def add_objective(
        self,
        title: str,
        description: str = "",
        owner: str = "",
        quarter: str = "",
        key_results: Iterable[dict[str, Any]] = (),
        **extra: Any,
    ) -> str:
        built: list[dict[str, Any]] = []
        for kr in key_results:
            built.append({**kr, "id": generate_id(taken=(k["id"] for k in built), prefix="kr")})
        return self.add({
            **extra,
            "title": title, "description": description, "owner": owner,
            "quarter": quarter, "key_results": built, "status": "active",
        })

    def add_key_result(
        self, objective_id: str, title: str, target: float,
        current: float = 0, unit: str = "", status: str = "on_track",
    ) -> str:
        return self.add_nested(objective_id, "key_results", {
            "title": title, "target": target, "current": current, "unit": unit, "status": status,
        }, prefix="kr")

    def update_key_result(self, objective_id: str, key_result_id: str, **changes: Any) -> None:
        self.update_nested(objective_id, "key_results", key_result_id, changes)

    def delete_key_result(self, objective_id: str, key_result_id: str) -> None:
        self.remove_nested(objective_id, "key_results", key_result_id)
