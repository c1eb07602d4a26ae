# =============================================================================
# crisis_core/__init__.py
# Core package for the Family Crisis Hub dashboard
# =============================================================================
"""
Framework-agnostic core of the Family Crisis Hub.

Everything under this package can be imported without a running Streamlit
session except ``crisis_core.ui`` and the Streamlit helpers in
``crisis_core.state.session``.
"""

__version__ = "0.1.0"
