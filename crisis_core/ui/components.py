import hashlib
from datetime import datetime, timezone
from html import escape
from typing import Optional

import streamlit as st

from crisis_core.errors import MapRenderError
from crisis_core.errors.handlers import ErrorContext, error_boundary, safe_execute
from crisis_core.models import STATUS_LABELS, CrisisEvent, Member, MultiAgentPlan, PreparednessPlan
from crisis_core.state.dashboard_controller import (
    SAMPLE_CHECKIN_MESSAGES,
    DashboardController,
)

from .formatting import format_timestamp, summarize_earthquake, time_ago, weather_alerts
from .map_view import build_situation_map, collect_markers, describe_locations
from .theme import NOTIFICATION_ICONS, STATUS_COLORS, STATUS_ICONS


def header(title: str, subtitle: str, icon: str = "🛡️"):
    st.markdown(f"""
        <div class="main-header">
            <div style="display:flex;gap:1.2rem;align-items:center;">
                <div style="font-size:2.6rem;filter:drop-shadow(0 0 15px rgba(255,255,255,.5));">{icon}</div>
                <div>
                    <h1 style="margin:0; font-size:2rem; color:white;">{escape(title)}</h1>
                    <p style="margin:.35rem 0 0 0;color:rgba(255,255,255,.85);font-size:1rem">{escape(subtitle)}</p>
                </div>
            </div>
        </div>
    """, unsafe_allow_html=True)


def data_row(label: str, value: str, warning: bool = False):
    css = "warning" if warning else ""
    st.markdown(
        f'<div class="data-row"><span class="label">{escape(label)}:</span>'
        f'<span class="{css}">{escape(value)}</span></div>',
        unsafe_allow_html=True,
    )


def offline_banner(controller: DashboardController):
    if controller.offline_banner:
        st.markdown(f'<div class="offline-banner">📴 {controller.offline_banner}</div>', unsafe_allow_html=True)
    if controller.location_warning:
        st.caption(f"📍 {controller.location_warning}")


def notifications(controller: DashboardController):
    for note in controller.notifications.active():
        cols = st.columns([12, 1])
        icon = NOTIFICATION_ICONS[note.kind]
        with cols[0]:
            getattr(st, note.kind)(note.message, icon=icon)
        with cols[1]:
            if st.button("✕", key=f"dismiss_{note.id}", help="Dismiss"):
                controller.notifications.dismiss(note.id)
                st.rerun()


# =============================================================================
# MEMBERS
# =============================================================================

def member_card(member: Member, controller: DashboardController):
    color = STATUS_COLORS[member.status]
    message = f'<p style="font-style:italic;">"{escape(member.message)}"</p>' if member.message else ""
    st.markdown(f"""
        <div class="member-card" style="--status-color:{color};">
            <span class="status-pill">{STATUS_ICONS[member.status]} {STATUS_LABELS[member.status]}</span>
            <h4 style="margin:0 0 .4rem 0;">{escape(member.name)}</h4>
            {message}
            <div class="last-update">Last update: {format_timestamp(member.last_update)}</div>
        </div>
    """, unsafe_allow_html=True)

    sharing = st.toggle(
        "Share location",
        value=member.is_location_shared,
        key=f"share_{member.id}",
    )
    if sharing != member.is_location_shared:
        controller.toggle_location_sharing(member.id)
        st.session_state.pop(f"share_{member.id}", None)
        st.rerun()

    voice_notes(member, controller)


def voice_notes(member: Member, controller: DashboardController):
    with st.expander(f"🎙️ Voice notes ({len(member.voice_notes)})"):
        offline = not controller.is_online
        audio = st.audio_input(
            "Record a voice note",
            key=f"record_{member.id}",
            disabled=offline or controller.loading["voice_note"],
        )
        if audio is not None:
            payload = audio.getvalue()
            digest = hashlib.sha1(payload).hexdigest()
            if st.session_state.get(f"_vn_digest_{member.id}") != digest:
                st.session_state[f"_vn_digest_{member.id}"] = digest
                controller.record_voice_note(member.id, payload, audio.type or "audio/wav")
                st.rerun()

        if controller.errors["voice_note"]:
            st.caption(f"⚠️ {controller.errors['voice_note']}")

        for note in reversed(member.voice_notes):
            cols = st.columns([6, 1])
            with cols[0]:
                st.caption(format_timestamp(note.created_at))
                st.audio(note.url)
            with cols[1]:
                if st.button("🗑️", key=f"delete_{note.id}", disabled=offline, help="Delete voice note"):
                    controller.delete_voice_note(member.id, note.id)
                    st.rerun()


# =============================================================================
# HAZARDS
# =============================================================================

@error_boundary(error_message="Hazard panel unavailable")
def hazard_panel(controller: DashboardController):
    top = st.columns([4, 1])
    with top[0]:
        st.markdown("### 📡 Live Crisis Data Feed")
    with top[1]:
        busy = controller.loading["crisis_data"]
        if st.button("Refreshing..." if busy else "Refresh Data", disabled=busy, key="refresh_hazards"):
            safe_execute(controller.refresh_crisis_data, error_message="Could not refresh hazard data")

    events = controller.events
    quake = summarize_earthquake(events)
    st.markdown("#### Active Earthquake")
    st.caption("USGS")
    if quake is None:
        st.write("✓ No significant earthquake activity detected in the area.")
    else:
        data_row("Event", quake.title)
        data_row("Magnitude", f"{quake.magnitude:.1f}" if quake.magnitude is not None else "Unknown", quake.magnitude_warning)
        data_row("Depth", quake.depth)
        data_row("Epicenter", quake.epicentre)
        data_row("Time", quake.time)
        if quake.aftershock_forecast:
            st.error(f"**Aftershock Forecast (24h):** {quake.aftershock_forecast}")
        if quake.tsunami_warning:
            st.warning("Tsunami warning issued for this event.")

    st.markdown("#### Weather Alerts")
    st.caption("NOAA / NWS")
    alerts = weather_alerts(events)
    if not alerts:
        st.write("✓ No severe weather alerts in effect.")
    for alert in alerts:
        weather_alert(alert)

    state = controller.services.feed.state
    if state.updated_at is not None:
        st.caption(f"Last updated: {time_ago(datetime.fromtimestamp(state.updated_at, tz=timezone.utc))}")


def weather_alert(event: CrisisEvent):
    with st.container(border=True):
        st.markdown(f"**{event.title}** · {event.severity}")
        for key in ("headline", "description", "instruction"):
            if event.details.get(key):
                st.write(event.details[key])
        st.caption(event.details.get("source", ""))


# =============================================================================
# MAP
# =============================================================================

def situation_map(controller: DashboardController):
    markers = collect_markers(controller.circle, controller.events, controller.plan, controller.user_location)
    map_settings = controller.settings.map
    try:
        fig = build_situation_map(markers, map_settings.style, map_settings.mapbox_token, map_settings.zoom)
    except MapRenderError as e:
        st.info(f"Map unavailable ({e.message}). Showing locations as text.")
        for line in describe_locations(markers):
            st.write(f"- {line}")
        return
    with ErrorContext("Rendering situation map"):
        st.plotly_chart(fig, use_container_width=True)


# =============================================================================
# AI PLAN
# =============================================================================

def plan_button(controller: DashboardController):
    busy = controller.loading["plan"]
    if busy:
        label = "Analyzing..."
    elif controller.plan is not None:
        label = "Regenerate AI Plan"
    else:
        label = "Generate AI Plan"
    if st.button(label, disabled=busy or not controller.is_online, key="generate_plan", type="primary"):
        with st.spinner("AI Crisis Team is analyzing the situation..."):
            controller.generate_plan()
        st.rerun()


def plan_view(plan: Optional[MultiAgentPlan], error: Optional[str] = None):
    if error:
        st.error(error)
    if plan is None:
        st.info("No AI plan generated yet. Click the button to get an assessment.")
        return

    synth = plan.synthesized_plan
    with st.container(border=True):
        st.markdown(f"### Urgency: {synth.urgency_level} - Top Priority Actions")
        st.markdown("\n".join(f"{i}. {action}" for i, action in enumerate(synth.priority_actions, 1)))
        st.caption(synth.reassurance_message)

    left, right = st.columns(2)
    with left:
        with st.expander("👥 Triage Assessment", expanded=True):
            st.write(f"_{plan.triage_analysis.assessment}_")
            for entry in plan.triage_analysis.priority_list:
                st.markdown(f"**{entry.name}**: {entry.reason}")
        with st.expander("🧭 Logistics & Evacuation", expanded=True):
            logistics = plan.logistics_plan
            st.write(f"_{logistics.movement_plan}_")
            st.markdown("**Recommended Meetup Points:**")
            for point in logistics.ranked_meetup_points():
                st.markdown(f"**{point.rank}. {point.name}**  \n{point.address}  \n_Reason: {point.reason}_")
                for member_route in point.routes:
                    route = member_route.route
                    verdict = "✅ Viable" if route.viable else "⚠️ Not Viable"
                    line = f"- {member_route.member_name}: {verdict} · {route.duration}, {route.distance}, Traffic: {route.traffic_level}"
                    if route.hazards:
                        line += f" · Hazards: {', '.join(route.hazards)}"
                    st.markdown(line)
            if logistics.supply_recommendations:
                st.markdown("**Supplies:** " + ", ".join(logistics.supply_recommendations))
    with right:
        with st.expander("➕ Medical Needs", expanded=True):
            st.write(f"_{plan.medical_assessment.overall_recommendation}_")
            for m in plan.medical_assessment.member_assessments:
                st.markdown(f"**{m.name}**: {m.needs}  \nInstruction: {m.instructions}")
        with st.expander("⚠️ Forecast & Hazards", expanded=True):
            for step in plan.prediction_forecast.timeline:
                st.markdown(f"**{step.time}:** {step.prediction}")
            st.markdown("**Secondary Hazards:** " + ", ".join(plan.prediction_forecast.secondary_hazards))


# =============================================================================
# SMS CHECK-IN
# =============================================================================

def checkin_panel(controller: DashboardController):
    circle = controller.circle
    if circle is None:
        return
    st.markdown("### 📱 SMS Check-in Simulator")

    names = {m.id: m.name for m in circle.members}
    member_id = st.selectbox(
        "Member",
        options=list(names),
        format_func=lambda mid: names[mid],
        key="checkin_member_id",
    )

    sample = st.selectbox("Quick message", ("",) + SAMPLE_CHECKIN_MESSAGES, key="checkin_sample")
    message = st.text_area("Message", value=sample, key=f"checkin_message_{sample}")

    busy = controller.loading["checkin"]
    if st.button("Analyzing..." if busy else "Send SMS", disabled=busy or not controller.is_online, key="send_checkin"):
        with st.spinner("Parsing message..."):
            controller.submit_checkin(member_id, message)
        st.rerun()

    if controller.errors["checkin"]:
        st.error(controller.errors["checkin"])

    if controller.checkin_log:
        st.markdown("#### Check-in Log")
        for entry in controller.checkin_log:
            with st.container(border=True):
                st.markdown(
                    f"**{entry.member_name}** · {STATUS_ICONS[entry.parsed_status]} "
                    f"{STATUS_LABELS[entry.parsed_status]} · {format_timestamp(entry.timestamp)}"
                )
                st.caption(f'"{entry.original_message}"')
                st.write(entry.parsed_summary)


# =============================================================================
# PREPAREDNESS
# =============================================================================

def preparedness_panel(plan: Optional[PreparednessPlan], controller: DashboardController):
    if plan is None:
        st.warning("Could not load preparedness plan.")
        return

    done = sum(1 for item in plan.items if item.is_complete)
    top = st.columns([3, 1])
    with top[0]:
        st.markdown(f"## {plan.name}")
    with top[1]:
        st.metric("Complete", f"{plan.score}%", help=f"{done} of {len(plan.items)} tasks done")
    st.progress(plan.score / 100)

    offline = not controller.is_online
    toggled = None
    for item in plan.items:
        with st.container(border=True):
            checked = st.checkbox(
                f"~~{item.name}~~" if item.is_complete else item.name,
                value=item.is_complete,
                key=f"prep_{item.id}",
                disabled=offline,
            )
            st.caption(item.description)
            if checked != item.is_complete:
                toggled = item.id
    if toggled:
        controller.toggle_preparedness_item(toggled)
        st.session_state.pop(f"prep_{toggled}", None)
        st.rerun()
