# =============================================================================
# crisis_core/offline/connection_manager.py
# Online/Offline Detection and Transition Signals
# =============================================================================
"""
ConnectivityMonitor - Tracks whether the dashboard is online.

Features:
- One reachability probe at start-up (or an explicit initial value)
- Updated only by the online/offline transition signals (or an explicit
  ``recheck``), no polling
- Network actions that find their endpoint unreachable signal offline
- Event callbacks on actual transitions
- Thread-safe; the simulation thread may read ``is_online`` concurrently

Dependents read ``monitor.is_online`` at the moment of each network action
rather than caching it.
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from crisis_core.logging import get_logger

logger = get_logger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.ONLINE
    last_change: Optional[datetime] = None
    last_online: Optional[datetime] = None
    transitions: int = 0


ProbeHost = Tuple[str, int]

DEFAULT_PROBE_HOSTS: Tuple[ProbeHost, ...] = (
    ("8.8.8.8", 53),        # Google DNS
    ("1.1.1.1", 53),        # Cloudflare DNS
    ("208.67.222.222", 53), # OpenDNS
)


def probe_internet(hosts: Sequence[ProbeHost] = DEFAULT_PROBE_HOSTS, timeout: float = 3.0) -> bool:
    """
    Check internet connectivity by attempting to reach well-known hosts.

    Returns:
        True if any host accepts a TCP connection
    """
    for host, port in hosts:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            continue
    return False


class ConnectivityMonitor:
    """
    Online/offline signal for the whole dashboard.

    Usage:
        monitor = ConnectivityMonitor()              # probes once
        monitor = ConnectivityMonitor(initial_online=False)
        if monitor.is_online:
            ...  # network action
        monitor.handle_offline()                     # transition signal
    """

    CONNECTION_TIMEOUT = 3

    def __init__(
        self,
        initial_online: Optional[bool] = None,
        probe: Optional[Callable[[], bool]] = None,
    ):
        self._probe = probe or (lambda: probe_internet(timeout=self.CONNECTION_TIMEOUT))
        if initial_online is None:
            initial_online = bool(self._probe())

        now = datetime.now()
        self._state = ConnectionState(
            status=ConnectionStatus.ONLINE if initial_online else ConnectionStatus.OFFLINE,
            last_change=now,
            last_online=now if initial_online else None,
        )
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._lock = threading.Lock()
        logger.info(f"ConnectivityMonitor initialized. Status: {self._state.status.value}")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return not self.is_online

    # =========================================================================
    # TRANSITION SIGNALS
    # =========================================================================

    def handle_online(self) -> None:
        """The environment reported that connectivity came back."""
        self._transition(ConnectionStatus.ONLINE)

    def handle_offline(self) -> None:
        """The environment reported that connectivity was lost."""
        self._transition(ConnectionStatus.OFFLINE)

    def recheck(self) -> bool:
        """Probe reachability again and signal the result. Returns whether online."""
        online = bool(self._probe())
        self.set_online(online)
        return online

    def set_online(self, online: bool) -> None:
        if online:
            self.handle_online()
        else:
            self.handle_offline()

    def _transition(self, status: ConnectionStatus) -> None:
        with self._lock:
            old_status = self._state.status
            if old_status == status:
                return
            now = datetime.now()
            self._state.status = status
            self._state.last_change = now
            self._state.transitions += 1
            if status == ConnectionStatus.ONLINE:
                self._state.last_online = now
            callbacks = list(self._callbacks)

        logger.info(f"Connection status changed: {old_status.value} -> {status.value}")
        for callback in callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "last_change": self._state.last_change.isoformat() if self._state.last_change else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "transitions": self._state.transitions,
        }
