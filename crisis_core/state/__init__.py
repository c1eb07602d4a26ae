# =============================================================================
# crisis_core/state/__init__.py
# Persistent and optimistic state primitives
# =============================================================================
"""
State Module

Import the dashboard controller from ``crisis_core.state.dashboard_controller``
and the Streamlit wiring from ``crisis_core.state.session`` directly; they
depend on the service layer, which itself uses the primitives below.
"""

from .persistent_state import (
    THEME_KEY,
    CIRCLE_KEY,
    CRISIS_CACHE_KEY,
    AI_PLAN_KEY,
    PREPAREDNESS_KEY,
    STATE_KEYS,
    KeyValueBackend,
    MemoryKeyValueBackend,
    FileKeyValueBackend,
    PersistentStateStore,
    PersistentBinding,
)
from .optimistic import OptimisticCommand, StateSlot

__all__ = [
    "THEME_KEY",
    "CIRCLE_KEY",
    "CRISIS_CACHE_KEY",
    "AI_PLAN_KEY",
    "PREPAREDNESS_KEY",
    "STATE_KEYS",
    "KeyValueBackend",
    "MemoryKeyValueBackend",
    "FileKeyValueBackend",
    "PersistentStateStore",
    "PersistentBinding",
    "OptimisticCommand",
    "StateSlot",
]
