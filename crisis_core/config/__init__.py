# =============================================================================
# crisis_core/config/__init__.py
# Application configuration
# =============================================================================

from .settings import (
    AppSettings,
    AISettings,
    HazardSettings,
    SimulationSettings,
    LocationSettings,
    StorageSettings,
    MapSettings,
    load_settings,
)

__all__ = [
    "AppSettings",
    "AISettings",
    "HazardSettings",
    "SimulationSettings",
    "LocationSettings",
    "StorageSettings",
    "MapSettings",
    "load_settings",
]
