import streamlit as st

from crisis_core.models import StatusType

# === COLOR PALETTE ===
PRIMARY_COLOR    = "#3b82f6"
SECONDARY_COLOR  = "#1e3a8a"
SUCCESS_COLOR    = "#10b981"
WARNING_COLOR    = "#f59e0b"
DANGER_COLOR     = "#ef4444"
UNKNOWN_COLOR    = "#6b7280"

PALETTES = {
    "dark": {
        "background": "#0f172a",
        "card": "#1e293b",
        "accent": "#334155",
        "text": "#e2e8f0",
        "subtle": "#94a3b8",
        "grid": "#334155",
    },
    "light": {
        "background": "#f8f9fa",
        "card": "#ffffff",
        "accent": "#e5e7eb",
        "text": "#2c3e50",
        "subtle": "#495057",
        "grid": "#e5e7eb",
    },
}

STATUS_COLORS = {
    StatusType.SAFE: SUCCESS_COLOR,
    StatusType.HELP: DANGER_COLOR,
    StatusType.INJURED: DANGER_COLOR,
    StatusType.UNKNOWN: UNKNOWN_COLOR,
}

STATUS_ICONS = {
    StatusType.SAFE: "🛡️",
    StatusType.HELP: "⚠️",
    StatusType.INJURED: "⚠️",
    StatusType.UNKNOWN: "👤",
}

NOTIFICATION_ICONS = {"success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️"}


def palette(theme: str) -> dict:
    return PALETTES.get(theme, PALETTES["dark"])


def apply_css(theme: str = "dark"):
    """Inject the dashboard stylesheet for the active theme."""
    p = palette(theme)
    st.markdown(f"""
        <style>
        .main, .stApp {{
            background-color: {p['background']};
            color: {p['text']};
            font-family: 'Segoe UI','Inter','SF Pro Display',sans-serif;
        }}
        .main-header {{
            background: linear-gradient(135deg, {PRIMARY_COLOR} 0%, {SECONDARY_COLOR} 100%);
            padding: 1.5rem 2rem; border-radius: 16px; margin-bottom: 1.5rem;
            border: 1px solid rgba(255,255,255,0.1); box-shadow: 0 8px 32px rgba(59,130,246,.3);
        }}
        .stTabs [data-baseweb="tab-list"] {{
            gap: 8px; background-color: {p['card']}; padding: 8px; border-radius: 10px;
            border: 1px solid {p['grid']};
        }}
        .stTabs [data-baseweb="tab"] {{
            height: 46px; padding: 0 20px; background-color: {p['background']}; border-radius: 8px;
            color: {p['subtle']}; font-weight: 500; border: none;
        }}
        .stTabs [aria-selected="true"] {{
            background: linear-gradient(135deg, {PRIMARY_COLOR} 0%, {SECONDARY_COLOR} 100%);
            color: white; font-weight: 600;
        }}
        .member-card {{
            background: {p['card']}; padding: 1rem 1.2rem; border-radius: 12px; margin: .5rem 0;
            border: 2px solid var(--status-color); box-shadow: 0 4px 8px rgba(0,0,0,0.15);
        }}
        .member-card .status-pill {{
            float: right; padding: .2rem .8rem; border-radius: 999px; font-weight: 600;
            color: var(--status-color); border: 1px solid var(--status-color);
        }}
        .member-card .last-update {{ color: {p['subtle']}; font-size: .75rem; border-top: 1px solid {p['accent']}; padding-top: .4rem; }}
        .data-row {{
            display: flex; justify-content: space-between; padding: .4rem 0;
            border-bottom: 1px dashed {p['accent']}; font-family: monospace;
        }}
        .data-row .label {{ color: {p['subtle']}; }}
        .data-row .warning {{ color: {WARNING_COLOR}; font-weight: 700; }}
        .offline-banner {{
            background: {WARNING_COLOR}; color: #1f2937; text-align: center; font-weight: 600;
            padding: .5rem; border-radius: 8px; margin-bottom: 1rem;
        }}
        .stButton button {{
            background: linear-gradient(135deg, {PRIMARY_COLOR} 0%, {SECONDARY_COLOR} 100%);
            color: white; border: none; border-radius: 10px; padding: .48rem 1.2rem; font-weight: 600;
        }}
        .stButton button:disabled {{ background: #ced4da; color: #6c757d; cursor: not-allowed; opacity: 0.65; }}
        h1,h2,h3,h4,h5,h6 {{ color: {p['text']}; font-weight: 600; }}
        h3 {{ color: {PRIMARY_COLOR}; }}
        [data-testid="stSidebar"] {{ background-color: {p['card']}; border-right: 1px solid {p['grid']}; }}
        </style>
    """, unsafe_allow_html=True)
