# =============================================================================
# crisis_core/models/crisis.py
# Live hazard events (earthquakes, weather alerts, ...)
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from .circle import Coordinates, from_iso, to_iso


EVENT_TYPES = ("earthquake", "weather_alert", "fire", "flood", "other")
SEVERITY_LEVELS = ("minor", "moderate", "major", "catastrophic")


@dataclass(frozen=True)
class CrisisEvent:
    """
    A single hazard event, immutable once fetched.

    ``details`` is the category-specific bag (magnitude, depth_km,
    headline, instruction, ...).
    """
    id: str
    type: str
    title: str
    severity: str
    location: Coordinates
    time: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "severity": self.severity,
            "location": self.location.to_dict(),
            "time": to_iso(self.time),
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CrisisEvent:
        return cls(
            id=data["id"],
            type=data.get("type", "other"),
            title=data.get("title", ""),
            severity=data.get("severity", "minor"),
            location=Coordinates.from_dict(data["location"]),
            time=from_iso(data["time"]),
            details=dict(data.get("details") or {}),
        )


def events_to_dicts(events: List[CrisisEvent]) -> List[Dict[str, Any]]:
    return [event.to_dict() for event in events]


def events_from_dicts(items: List[Dict[str, Any]]) -> List[CrisisEvent]:
    return [CrisisEvent.from_dict(item) for item in items]
