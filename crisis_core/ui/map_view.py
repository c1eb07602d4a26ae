# =============================================================================
# crisis_core/ui/map_view.py
# Situation map: members, hazards, meetup points and the user's position
# =============================================================================
"""
The map is a plotly ``Scattermapbox`` figure. When the figure cannot be built
(a token-only style without a token, or any plotly error) ``MapRenderError``
is raised and the dashboard shows ``describe_locations`` instead.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import plotly.graph_objects as go

from crisis_core.errors import MapRenderError
from crisis_core.logging import get_logger
from crisis_core.models import (
    STATUS_LABELS,
    Coordinates,
    CrisisEvent,
    FamilyCircle,
    MultiAgentPlan,
)

from .theme import DANGER_COLOR, PRIMARY_COLOR, STATUS_COLORS, SUCCESS_COLOR, WARNING_COLOR

logger = get_logger(__name__)

# Styles plotly can render without a Mapbox access token
TOKENLESS_STYLES = frozenset({"open-street-map", "carto-positron", "carto-darkmatter", "white-bg"})

KIND_COLORS = {
    "hazard": WARNING_COLOR,
    "meetup": SUCCESS_COLOR,
    "you": PRIMARY_COLOR,
}
KIND_LABELS = {
    "member": "Family",
    "hazard": "Hazards",
    "meetup": "Meetup points",
    "you": "You",
}


@dataclass(frozen=True)
class MapMarker:
    kind: str
    label: str
    location: Coordinates
    detail: str = ""
    color: str = PRIMARY_COLOR


def collect_markers(
    circle: Optional[FamilyCircle],
    events: Sequence[CrisisEvent],
    plan: Optional[MultiAgentPlan],
    user_location: Optional[Coordinates],
) -> List[MapMarker]:
    markers: List[MapMarker] = []
    if circle is not None:
        for member in circle.members:
            if not member.is_location_shared or member.location is None:
                continue
            markers.append(
                MapMarker(
                    kind="member",
                    label=member.name,
                    location=member.location,
                    detail=STATUS_LABELS[member.status],
                    color=STATUS_COLORS[member.status],
                )
            )
    for event in events:
        color = DANGER_COLOR if event.severity in ("major", "catastrophic") else KIND_COLORS["hazard"]
        markers.append(MapMarker("hazard", event.title, event.location, event.severity, color))
    if plan is not None:
        for point in plan.logistics_plan.ranked_meetup_points():
            markers.append(
                MapMarker(
                    "meetup",
                    f"{point.rank}. {point.name}",
                    point.coordinates.to_coordinates(),
                    point.address,
                    KIND_COLORS["meetup"],
                )
            )
    if user_location is not None:
        markers.append(MapMarker("you", "You are here", user_location, "", KIND_COLORS["you"]))
    return markers


def describe_locations(markers: Sequence[MapMarker]) -> List[str]:
    """Text fallback listing every marker's coordinates."""
    lines = []
    for m in markers:
        detail = f" ({m.detail})" if m.detail else ""
        lines.append(f"{KIND_LABELS[m.kind]}: {m.label}{detail} at {m.location.lat:.4f}, {m.location.lng:.4f}")
    return lines


def _center(markers: Sequence[MapMarker]) -> Dict[str, float]:
    you = next((m for m in markers if m.kind == "you"), None)
    if you is not None:
        return {"lat": you.location.lat, "lon": you.location.lng}
    return {
        "lat": sum(m.location.lat for m in markers) / len(markers),
        "lon": sum(m.location.lng for m in markers) / len(markers),
    }


def build_situation_map(
    markers: Sequence[MapMarker],
    style: str = "open-street-map",
    mapbox_token: Optional[str] = None,
    zoom: int = 11,
    height: int = 520,
) -> go.Figure:
    """
    Build the situation map figure.

    Raises:
        MapRenderError: style needs a token that is missing, nothing to
            plot, or plotly rejected the figure
    """
    if style not in TOKENLESS_STYLES and not mapbox_token:
        raise MapRenderError(f"Map style '{style}' requires a Mapbox access token", style=style)
    if not markers:
        raise MapRenderError("No locations to display", style=style)

    try:
        fig = go.Figure()
        for kind, name in KIND_LABELS.items():
            group = [m for m in markers if m.kind == kind]
            if not group:
                continue
            fig.add_trace(
                go.Scattermapbox(
                    lat=[m.location.lat for m in group],
                    lon=[m.location.lng for m in group],
                    mode="markers+text",
                    marker=dict(size=14 if kind != "hazard" else 18, color=[m.color for m in group]),
                    text=[m.label for m in group],
                    textposition="top right",
                    hovertext=[f"{m.label}<br>{m.detail}" if m.detail else m.label for m in group],
                    hoverinfo="text",
                    name=name,
                )
            )
        fig.update_layout(
            mapbox=dict(style=style, accesstoken=mapbox_token, center=_center(markers), zoom=zoom),
            margin=dict(l=0, r=0, t=0, b=0),
            height=height,
            legend=dict(orientation="h", yanchor="bottom", y=0.01, xanchor="left", x=0.01),
        )
    except (ValueError, TypeError) as e:
        logger.warning(f"Map figure rejected: {e}")
        raise MapRenderError(f"Map could not be initialised: {e}", style=style) from e
    return fig
