# =============================================================================
# crisis_core/services/__init__.py
# Service Layer for Family Crisis Hub
# =============================================================================

from .base_service import BaseService, ServiceResult
from .circle_service import (
    CircleStore,
    Subscription,
    SEED_PROFILES,
    DEFAULT_MEMBER_SEEDS,
    DEFAULT_CIRCLE_NAME,
    VOICE_NOTE_MESSAGE,
    validate_circle_form,
)
from .crisis_data_service import (
    CrisisDataFetcher,
    CrisisFeed,
    CacheEntry,
    RefreshTicket,
    SEISMIC_CACHE_TTL,
    WEATHER_CACHE_TTL,
    decode_crisis_cache,
)
from .preparedness_service import PreparednessService, default_preparedness_plan
from .voice_note_service import VoiceNoteService

__all__ = [
    "BaseService",
    "ServiceResult",
    "CircleStore",
    "Subscription",
    "SEED_PROFILES",
    "DEFAULT_MEMBER_SEEDS",
    "DEFAULT_CIRCLE_NAME",
    "VOICE_NOTE_MESSAGE",
    "validate_circle_form",
    "CrisisDataFetcher",
    "CrisisFeed",
    "CacheEntry",
    "RefreshTicket",
    "SEISMIC_CACHE_TTL",
    "WEATHER_CACHE_TTL",
    "decode_crisis_cache",
    "PreparednessService",
    "default_preparedness_plan",
    "VoiceNoteService",
]
