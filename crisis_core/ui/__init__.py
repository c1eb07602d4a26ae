# =============================================================================
# crisis_core/ui/__init__.py
# Streamlit rendering for the Family Crisis Hub dashboard
# =============================================================================

from .dashboard import render_dashboard
from .theme import apply_css

__all__ = ["render_dashboard", "apply_css"]
