from __future__ import annotations

from typing import Any

from signalpm.schemas import Idea
from signalpm.stores.base import EntityStore


class IdeaStore(EntityStore[Idea]):
    collection = "ideas"
    model = Idea
    label = "idea"

    def by_status(self, status: str) -> list[Idea]:
        return self.where(status=status)

    @property
    def promoted(self) -> list[Idea]:
        return self.where(status="promoted")

    def add_idea(self, title: str, job: dict[str, Any] | None = None, **extra: Any) -> str:
        return self.add({**extra, "title": title, "job": job or {}, "status": "new"})

    def update_status(self, idea_id: str, status: str) -> None:
        self.update(idea_id, {"status": status})
