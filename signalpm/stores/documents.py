from __future__ import annotations

from typing import Any

from signalpm.schemas import KnowledgeDocument
from signalpm.stores.base import EntityStore


class KnowledgeBaseStore(EntityStore[KnowledgeDocument]):
    """Metadata for reference documents; file contents live elsewhere."""

    collection = "documents"
    model = KnowledgeDocument
    label = "document"

    def by_category(self, category: str) -> list[KnowledgeDocument]:
        return self.where(category=category)

    @property
    def all_tags(self) -> list[str]:
        return sorted({tag for d in self.items for tag in d.tags})

    def search(self, term: str) -> list[KnowledgeDocument]:
        """Case-insensitive match on name, description or any tag."""
        term = term.lower()
        return [
            d for d in self.items
            if term in d.name.lower()
            or term in d.description.lower()
            or any(term in t.lower() for t in d.tags)
        ]

    def add_document(self, name: str, **extra: Any) -> str:
        return self.add({**extra, "name": name})
