# =============================================================================
# crisis_core/models/circle.py
# Family circle aggregate: members, statuses, locations, voice notes
# =============================================================================
"""
Value types for the family circle aggregate.

All types are frozen dataclasses. The aggregate store produces new versions
with ``dataclasses.replace`` instead of mutating in place, so a circle handed to
the UI never changes underneath it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class StatusType(Enum):
    """Safety status of a circle member."""
    SAFE = "SAFE"
    HELP = "HELP"
    INJURED = "INJURED"
    UNKNOWN = "UNKNOWN"


STATUS_LABELS = {
    StatusType.SAFE: "Safe",
    StatusType.HELP: "Needs Help",
    StatusType.INJURED: "Injured",
    StatusType.UNKNOWN: "Unknown",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Always return UTC ISO string with 'Z' suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Coordinates:
    """A point on the map; accuracy is a radius in metres."""
    lat: float
    lng: float
    accuracy: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"lat": self.lat, "lng": self.lng}
        if self.accuracy is not None:
            data["accuracy"] = self.accuracy
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Coordinates:
        accuracy = data.get("accuracy")
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            accuracy=float(accuracy) if accuracy is not None else None,
        )

    def same_point(self, other: Optional[Coordinates]) -> bool:
        """Compare position only, ignoring accuracy."""
        return other is not None and (self.lat, self.lng) == (other.lat, other.lng)


@dataclass(frozen=True)
class VoiceNote:
    """A recorded audio check-in attached to a member."""
    id: str
    url: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, "created_at": to_iso(self.created_at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VoiceNote:
        return cls(id=data["id"], url=data["url"], created_at=from_iso(data["created_at"]))


@dataclass(frozen=True)
class Member:
    """
    A household member tracked by the circle.

    ``last_update`` never moves backwards; the aggregate store stamps it on
    every mutation of status, message, location sharing or voice notes.
    """
    id: str
    name: str
    phone: str
    status: StatusType = StatusType.UNKNOWN
    is_location_shared: bool = True
    message: Optional[str] = None
    location: Optional[Coordinates] = None
    voice_notes: Tuple[VoiceNote, ...] = field(default_factory=tuple)
    last_update: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "status": self.status.value,
            "is_location_shared": self.is_location_shared,
            "message": self.message,
            "location": self.location.to_dict() if self.location else None,
            "voice_notes": [note.to_dict() for note in self.voice_notes],
            "last_update": to_iso(self.last_update),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Member:
        location = data.get("location")
        return cls(
            id=data["id"],
            name=data["name"],
            phone=data.get("phone", ""),
            status=StatusType(data.get("status", StatusType.UNKNOWN.value)),
            is_location_shared=bool(data.get("is_location_shared", True)),
            message=data.get("message"),
            location=Coordinates.from_dict(location) if location else None,
            voice_notes=tuple(VoiceNote.from_dict(n) for n in data.get("voice_notes", [])),
            last_update=from_iso(data["last_update"]) if data.get("last_update") else utc_now(),
        )


@dataclass(frozen=True)
class FamilyCircle:
    """The family circle aggregate. Member order is display order."""
    id: str
    name: str
    members: Tuple[Member, ...] = field(default_factory=tuple)

    def find_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]

    def status_counts(self) -> Dict[StatusType, int]:
        counts = {status: 0 for status in StatusType}
        for member in self.members:
            counts[member.status] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "members": [m.to_dict() for m in self.members],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FamilyCircle:
        return cls(
            id=data["id"],
            name=data["name"],
            members=tuple(Member.from_dict(m) for m in data.get("members", [])),
        )


def next_update_time(member: Member, now: datetime) -> datetime:
    """Timestamp for a mutation of ``member`` that never goes backwards."""
    return now if now >= member.last_update else member.last_update
