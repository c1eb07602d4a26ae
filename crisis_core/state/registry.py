# =============================================================================
# crisis_core/state/registry.py
# One live dashboard controller per browser session
# =============================================================================
"""
ControllerRegistry - process-wide map of browser session id -> controller.

A page reload starts a fresh Streamlit session, but the controller built for
the previous one is still alive with its simulation thread running. Claiming
the browser session id again shuts that controller down before the new one
is built, so at most one controller ever writes a session's state.
"""

from __future__ import annotations
import threading
from typing import Callable, Dict, Protocol, TypeVar

from crisis_core.logging import get_logger

logger = get_logger(__name__)


class Closeable(Protocol):
    def shutdown(self) -> None: ...


C = TypeVar("C", bound=Closeable)


class ControllerRegistry:
    """
    Usage:
        registry = ControllerRegistry()
        controller = registry.claim(session_id, lambda: DashboardController(...))
    """

    def __init__(self):
        self._controllers: Dict[str, Closeable] = {}
        self._lock = threading.Lock()

    def claim(self, session_id: str, factory: Callable[[], C]) -> C:
        """Shut down the session's previous controller, then build and register a new one."""
        with self._lock:
            previous = self._controllers.pop(session_id, None)
            if previous is not None:
                logger.info(f"Shutting down previous controller for session {session_id}")
                previous.shutdown()
            controller = factory()
            self._controllers[session_id] = controller
            return controller
