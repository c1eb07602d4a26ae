# =============================================================================
# crisis_core/models/__init__.py
# Domain models for Family Crisis Hub
# =============================================================================

from .circle import (
    StatusType,
    STATUS_LABELS,
    Coordinates,
    VoiceNote,
    Member,
    FamilyCircle,
    utc_now,
    next_update_time,
    to_iso,
    from_iso,
)
from .crisis import CrisisEvent, EVENT_TYPES, SEVERITY_LEVELS, events_to_dicts, events_from_dicts
from .preparedness import PreparednessItem, PreparednessPlan, COMPLETE, INCOMPLETE
from .plan import (
    MultiAgentPlan,
    CheckinResult,
    RouteInfo,
    MeetupPoint,
    MemberRoute,
    NON_VIABLE_ROUTE,
)

__all__ = [
    "StatusType",
    "STATUS_LABELS",
    "Coordinates",
    "VoiceNote",
    "Member",
    "FamilyCircle",
    "utc_now",
    "next_update_time",
    "to_iso",
    "from_iso",
    "CrisisEvent",
    "EVENT_TYPES",
    "SEVERITY_LEVELS",
    "events_to_dicts",
    "events_from_dicts",
    "PreparednessItem",
    "PreparednessPlan",
    "COMPLETE",
    "INCOMPLETE",
    "MultiAgentPlan",
    "CheckinResult",
    "RouteInfo",
    "MeetupPoint",
    "MemberRoute",
    "NON_VIABLE_ROUTE",
]
