# =============================================================================
# crisis_core/errors/__init__.py
# Centralized Error Handling for Family Crisis Hub
# =============================================================================

from .exceptions import (
    CrisisHubError,
    NotFoundError,
    OfflineError,
    AIGenerationError,
    InvalidResponseError,
    HazardFetchError,
    MapRenderError,
    PersistenceError,
    ConfigurationError,
)

__all__ = [
    "CrisisHubError",
    "NotFoundError",
    "OfflineError",
    "AIGenerationError",
    "InvalidResponseError",
    "HazardFetchError",
    "MapRenderError",
    "PersistenceError",
    "ConfigurationError",
]
