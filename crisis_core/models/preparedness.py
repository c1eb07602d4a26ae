# =============================================================================
# crisis_core/models/preparedness.py
# Household preparedness checklist
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple


COMPLETE = "complete"
INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class PreparednessItem:
    id: str
    category: str
    name: str
    description: str
    status: str = INCOMPLETE

    @property
    def is_complete(self) -> bool:
        return self.status == COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "name": self.name,
            "description": self.description,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PreparednessItem:
        return cls(
            id=data["id"],
            category=data.get("category", ""),
            name=data["name"],
            description=data.get("description", ""),
            status=data.get("status", INCOMPLETE),
        )


@dataclass(frozen=True)
class PreparednessPlan:
    id: str
    name: str
    items: Tuple[PreparednessItem, ...] = field(default_factory=tuple)

    @property
    def score(self) -> int:
        """Percentage of completed items, rounded."""
        if not self.items:
            return 0
        completed = sum(1 for item in self.items if item.is_complete)
        return round(completed / len(self.items) * 100)

    def with_item_status(self, item_id: str, status: str) -> PreparednessPlan:
        items = tuple(
            replace(item, status=status) if item.id == item_id else item
            for item in self.items
        )
        return replace(self, items=items)

    def find_item(self, item_id: str):
        return next((item for item in self.items if item.id == item_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PreparednessPlan:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            items=tuple(PreparednessItem.from_dict(i) for i in data.get("items", [])),
        )
