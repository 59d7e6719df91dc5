from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from signalpm.schemas import JourneyMap
from signalpm.stores.base import EntityStore
from signalpm.utils import generate_id


class JourneyMapStore(EntityStore[JourneyMap]):
    collection = "journeyMaps"
    model = JourneyMap
    label = "journey map"

    def for_idea(self, idea_id: str) -> list[JourneyMap]:
        return self.where(idea_id=idea_id)

    def for_archetype(self, archetype_id: str) -> list[JourneyMap]:
        return self.where(archetype_id=archetype_id)

    def add_journey_map(self, title: str, steps: Iterable[dict[str, Any]] = (), **extra: Any) -> str:
        built: list[dict[str, Any]] = []
        for order, step in enumerate(steps):
            step_id = generate_id(taken=(s["id"] for s in built), prefix="step")
            built.append({**step, "id": step_id, "order": order})
        return self.add({**extra, "title": title, "steps": built})

    def add_step(self, map_id: str, title: str, **fields: Any) -> str:
        order = len(self.nested(map_id, "steps"))
        return self.add_nested(map_id, "steps", {**fields, "title": title, "order": order}, prefix="step")

    def update_step(self, map_id: str, step_id: str, **changes: Any) -> None:
        self.update_nested(map_id, "steps", step_id, changes)

    def remove_step(self, map_id: str, step_id: str) -> None:
        """Remove a step and renumber the remaining ones from zero."""
        steps = [s for s in self.nested(map_id, "steps") if s.id != step_id]
        steps.sort(key=lambda s: s.order)
        self.update(map_id, {
            "steps": [{**s.model_dump(), "order": i} for i, s in enumerate(steps)],
        })
