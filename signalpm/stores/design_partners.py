from __future__ import annotations

from datetime import datetime
from typing import Any

from signalpm.schemas import DesignPartner, DesignPartnerEngagement
from signalpm.stores.base import EntityStore
from signalpm.utils import utcnow


def _timestamp(value: datetime | None) -> float:
    return value.timestamp() if value else 0.0


class DesignPartnerStore(EntityStore[DesignPartner]):
    collection = "designPartners"
    model = DesignPartner
    label = "design partner"

    # -- views --------------------------------------------------------------

    @property
    def prospects(self) -> list[DesignPartner]:
        return self.where(status="prospect")

    @property
    def active(self) -> list[DesignPartner]:
        return self.where(status="active")

    @property
    def paused(self) -> list[DesignPartner]:
        return self.where(status="paused")

    @property
    def churned(self) -> list[DesignPartner]:
        return self.where(status="churned")

    @property
    def by_archetype(self) -> dict[str, list[DesignPartner]]:
        grouped: dict[str, list[DesignPartner]] = {}
        for p in self.items:
            if p.archetype_id:
                grouped.setdefault(p.archetype_id, []).append(p)
        return grouped

    @property
    def all_feedback(self) -> list[dict[str, Any]]:
        """Feedback across every partner, newest first, tagged with its partner."""
        rows = [
            {**f.model_dump(), "partner_id": p.id, "partner_name": p.name}
            for p in self.items for f in p.feedback
        ]
        rows.sort(key=lambda r: _timestamp(r["created_at"]), reverse=True)
        return rows

    def count_for_archetype(self, archetype_id: str) -> int:
        return len(self.where(archetype_id=archetype_id))

    def last_engagement(self, partner_id: str) -> DesignPartnerEngagement | None:
        partner = self.get(partner_id)
        if partner is None or not partner.engagements:
            return None
        return max(partner.engagements, key=lambda e: _timestamp(e.date))

    # -- mutations ----------------------------------------------------------

    def defaults(self) -> dict[str, Any]:
        return {"status": "prospect", "engagements": [], "feedback": [], "insights": []}

    def add_partner(self, name: str, contact_name: str = "", **extra: Any) -> str:
        return self.add({**extra, "name": name, "contact_name": contact_name})

    def update_status(self, partner_id: str, status: str) -> None:
        data: dict[str, Any] = {"status": status}
        partner = self.get(partner_id)
        if status == "active" and partner is not None and partner.start_date is None:
            data["start_date"] = utcnow()
        self.update(partner_id, data)

    def add_engagement(self, partner_id: str, engagement_type: str, title: str,
                       date: datetime | None = None, notes: str = "",
                       key_takeaways: list[str] | None = None) -> str:
        return self.add_nested(partner_id, "engagements", {
            "type": engagement_type, "title": title, "date": date or utcnow(), "notes": notes,
            "key_takeaways": key_takeaways or [], "created_at": utcnow(),
        })

    def update_engagement(self, partner_id: str, engagement_id: str, **changes: Any) -> None:
        self.update_nested(partner_id, "engagements", engagement_id, changes)

    def remove_engagement(self, partner_id: str, engagement_id: str) -> None:
        self.remove_nested(partner_id, "engagements", engagement_id)

    def add_feedback(self, partner_id: str, content: str, theme: str = "",
                     hypothesis_id: str | None = None, engagement_id: str | None = None) -> str:
        return self.add_nested(partner_id, "feedback", {
            "content": content, "theme": theme, "hypothesis_id": hypothesis_id,
            "engagement_id": engagement_id, "created_at": utcnow(),
        })

    def update_feedback(self, partner_id: str, feedback_id: str, **changes: Any) -> None:
        self.update_nested(partner_id, "feedback", feedback_id, changes)

    def remove_feedback(self, partner_id: str, feedback_id: str) -> None:
        self.remove_nested(partner_id, "feedback", feedback_id)

    def add_insight(self, partner_id: str, content: str, category: str, priority: str = "medium") -> str:
        return self.add_nested(partner_id, "insights", {
            "content": content, "category": category, "priority": priority, "created_at": utcnow(),
        })

    def remove_insight(self, partner_id: str, insight_id: str) -> None:
        self.remove_nested(partner_id, "insights", insight_id)
