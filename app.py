from __future__ import annotations
import streamlit as st

from crisis_core.errors import ConfigurationError
from crisis_core.errors.handlers import handle_error
from crisis_core.state.session import get_controller, get_settings
from crisis_core.ui import apply_css, render_dashboard

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Family Crisis Hub",
    page_icon="🛡️",
    layout="wide",
    initial_sidebar_state="expanded",
)

try:
    settings = get_settings()
except ConfigurationError as e:
    handle_error(e)
    st.stop()

controller = get_controller(settings)

apply_css(controller.theme)

# ============================================================================
# DASHBOARD
# ============================================================================
render_dashboard(controller)
