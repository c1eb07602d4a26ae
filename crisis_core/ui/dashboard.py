# =============================================================================
# crisis_core/ui/dashboard.py
# Page composition: setup form, crisis view, preparedness view, sidebar
# =============================================================================

from __future__ import annotations

import streamlit as st

from crisis_core.models import STATUS_LABELS, StatusType
from crisis_core.services import DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS
from crisis_core.state.dashboard_controller import CRISIS_TABS, THEMES, DashboardController

from . import components

TAB_LABELS = {
    "status": "👥 Family Status",
    "map": "🗺️ Map",
    "hazards": "📡 Live Hazards",
    "plan": "🤖 AI Action Plan",
    "checkin": "📱 SMS Check-in",
}
VIEW_LABELS = {"crisis": "Live Crisis View", "preparedness": "Preparedness Plan"}


def render_sidebar(controller: DashboardController):
    with st.sidebar:
        st.markdown("## 🛡️ Family Crisis Hub")
        view = st.radio(
            "View",
            options=list(VIEW_LABELS),
            format_func=VIEW_LABELS.get,
            index=list(VIEW_LABELS).index(controller.view),
            disabled=controller.circle is None,
        )
        if view != controller.view:
            controller.set_view(view)

        theme = st.selectbox("Theme", THEMES, index=THEMES.index(controller.theme))
        if theme != controller.theme:
            controller.set_theme(theme)
            st.rerun()

        st.divider()
        simulate_offline = st.toggle("Simulate offline", value=not controller.is_online)
        if simulate_offline == controller.is_online:
            controller.services.monitor.set_online(not simulate_offline)
            st.rerun()
        status = controller.services.monitor.get_status_display()
        label = "🟢 Online" if status["is_online"] else "🔴 Offline"
        st.caption(f"{label} · {status['transitions']} connectivity changes")
        if not status["is_online"] and st.button("Check connection", key="recheck_connection"):
            if controller.services.monitor.recheck():
                controller.refresh_crisis_data()
            st.rerun()

        if controller.circle is not None:
            st.divider()
            running = "running" if controller.simulation_running else "stopped"
            st.caption(f"Live simulation {running}")
            if st.button("Exit Circle", key="exit_circle"):
                controller.exit_circle()
                st.rerun()


def render_setup(controller: DashboardController):
    components.header("Create Your Family Circle", "Add the people you need to reach in a crisis.")
    count = st.number_input("Members", min_value=1, max_value=12, key="setup_members")

    with st.form("circle_setup"):
        name = st.text_input("Circle name", value=DEFAULT_CIRCLE_NAME)
        seeds = []
        for i in range(int(count)):
            default = DEFAULT_MEMBER_SEEDS[i] if i < len(DEFAULT_MEMBER_SEEDS) else {"name": "", "phone": ""}
            cols = st.columns(2)
            with cols[0]:
                member_name = st.text_input(f"Member {i + 1} name", value=default["name"], key=f"seed_name_{i}")
            with cols[1]:
                phone = st.text_input(f"Member {i + 1} phone", value=default["phone"], key=f"seed_phone_{i}")
            seeds.append({"name": member_name, "phone": phone})
        submitted = st.form_submit_button("Create Circle")

    if submitted:
        result = controller.create_circle(name, seeds)
        if result:
            st.rerun()
        st.error(result.error)


def _status_summary(controller: DashboardController):
    counts = controller.circle.status_counts()
    cols = st.columns(len(StatusType))
    for col, status in zip(cols, StatusType):
        col.metric(STATUS_LABELS[status], counts.get(status, 0))


def render_crisis_view(controller: DashboardController):
    tabs = st.tabs([TAB_LABELS[t] for t in CRISIS_TABS])
    panels = dict(zip(CRISIS_TABS, tabs))

    with panels["status"]:
        live_status(controller)
    with panels["map"]:
        components.situation_map(controller)
    with panels["hazards"]:
        components.hazard_panel(controller)
    with panels["plan"]:
        components.plan_button(controller)
        components.plan_view(controller.plan, controller.errors["plan"])
    with panels["checkin"]:
        components.checkin_panel(controller)


def live_status(controller: DashboardController):
    """Member cards, re-rendered on the simulation interval."""
    interval = controller.settings.simulation.interval_seconds

    @st.fragment(run_every=interval if controller.simulation_running else None)
    def _cards():
        if controller.circle is None:
            return
        _status_summary(controller)
        members = controller.circle.members
        cols = st.columns(2)
        for i, member in enumerate(members):
            with cols[i % 2]:
                components.member_card(member, controller)

    _cards()


def render_preparedness_view(controller: DashboardController):
    components.preparedness_panel(controller.preparedness_plan, controller)


def render_dashboard(controller: DashboardController):
    components.notifications(controller)
    components.offline_banner(controller)
    render_sidebar(controller)

    if controller.circle is None:
        render_setup(controller)
        return

    components.header(f"Crisis Command Center: {controller.circle.name}", "Live family status, hazards and AI guidance.")
    if controller.view == "preparedness":
        render_preparedness_view(controller)
    else:
        render_crisis_view(controller)
