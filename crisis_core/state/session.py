# =============================================================================
# crisis_core/state/session.py
# Streamlit session-state wiring for the dashboard
# =============================================================================

from __future__ import annotations
import re
import uuid
from typing import Optional

import streamlit as st

from crisis_core.config import AppSettings, load_settings
from crisis_core.logging import get_logger, setup_logging
from crisis_core.state.dashboard_controller import DashboardController, build_services
from crisis_core.state.registry import ControllerRegistry

logger = get_logger(__name__)

# Query parameter that keeps a browser's session id across page reloads
SESSION_PARAM = "hub"
_SESSION_ID = re.compile(r"[0-9a-f]{32}")

# Central registry for session-state keys used across the app.
SESSION_DEFAULTS = {
    "settings": None,
    "controller": None,
    "setup_members": 4,
}


def init_state():
    """Initialize session state with defaults."""
    for k, v in SESSION_DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v


@st.cache_resource
def controller_registry() -> ControllerRegistry:
    return ControllerRegistry()


def get_settings() -> AppSettings:
    if st.session_state.get("settings") is None:
        settings = load_settings()
        setup_logging(level=settings.log_level)
        st.session_state["settings"] = settings
    return st.session_state["settings"]


def browser_session_id() -> str:
    """Id of this browser's dashboard, kept in the URL so a reload finds the same state."""
    session_id = st.query_params.get(SESSION_PARAM)
    if not session_id or not _SESSION_ID.fullmatch(session_id):
        session_id = uuid.uuid4().hex
        st.query_params[SESSION_PARAM] = session_id
    return session_id


def get_controller(settings: Optional[AppSettings] = None) -> DashboardController:
    """Build the controller once per browser session and mount it."""
    init_state()
    controller = st.session_state.get("controller")
    if controller is None or controller.closed:
        settings = settings or get_settings()
        session_id = browser_session_id()
        controller = controller_registry().claim(
            session_id,
            lambda: DashboardController(build_services(settings, session_id=session_id), settings),
        )
        st.session_state["controller"] = controller
        logger.info(f"Dashboard controller created for session {session_id}")
    if not controller.mounted:
        controller.mount()
    return controller
