"""Delivery tracker: what shipped (changelog) and what is in the way (blockers)."""
from __future__ import annotations

from typing import Any

from signalpm.docstore import SERVER_TIMESTAMP
from signalpm.schemas import Blocker, ChangelogEntry
from signalpm.stores.base import EntityStore
from signalpm.utils import utcnow


class ChangelogStore(EntityStore[ChangelogEntry]):
    collection = "changelog"
    model = ChangelogEntry
    label = "changelog entry"
    order_by = "shipped_at"

    def add_entry(self, title: str, description: str = "", change_type: str = "feature", **extra: Any) -> str:
        return self.add({
            **extra, "title": title, "description": description,
            "type": change_type, "shipped_at": utcnow(),
        })

    def for_hypothesis(self, hypothesis_id: str) -> list[ChangelogEntry]:
        return [c for c in self.items if hypothesis_id in c.validated_hypothesis_ids]

    def for_focus_area(self, focus_area_id: str) -> list[ChangelogEntry]:
        return self.where(focus_area_id=focus_area_id)


class BlockerStore(EntityStore[Blocker]):
    collection = "blockers"
    model = Blocker
    label = "blocker"

    @property
    def open(self) -> list[Blocker]:
        return self.where(status="open")

    @property
    def resolved(self) -> list[Blocker]:
        return self.where(status="resolved")

    def add_blocker(self, title: str, description: str = "", owner: str = "", **extra: Any) -> str:
        return self.add({**extra, "title": title, "description": description,
                         "owner": owner, "status": "open"})

    def resolve(self, blocker_id: str) -> None:
        self.update(blocker_id, {"status": "resolved", "resolved_at": SERVER_TIMESTAMP})

    def reopen(self, blocker_id: str) -> None:
        self.update(blocker_id, {"status": "open", "resolved_at": None})
