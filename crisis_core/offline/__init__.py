# =============================================================================
# crisis_core/offline/__init__.py
# Online/offline awareness for Family Crisis Hub
# =============================================================================
"""
Offline Awareness Module

Every network action (hazard fetch, AI call, voice-note recording) asks the
ConnectivityMonitor first and degrades instead of failing downstream.

Usage:
------
from crisis_core.offline import ConnectivityMonitor

monitor = ConnectivityMonitor()
if not monitor.is_online:
    ...  # serve cached data / block the action
"""

from .connection_manager import (
    ConnectivityMonitor,
    ConnectionState,
    ConnectionStatus,
    probe_internet,
)

__all__ = [
    "ConnectivityMonitor",
    "ConnectionState",
    "ConnectionStatus",
    "probe_internet",
]
