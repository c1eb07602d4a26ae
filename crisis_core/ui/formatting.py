# =============================================================================
# crisis_core/ui/formatting.py
# Display formatting shared by the dashboard panels (no Streamlit import)
# =============================================================================

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from crisis_core.models import Coordinates, CrisisEvent, utc_now

MAGNITUDE_WARNING = 5.5

_TIME_UNITS = (
    (31536000, "years"),
    (2592000, "months"),
    (86400, "days"),
    (3600, "hours"),
    (60, "minutes"),
)


def time_ago(then: datetime, now: Optional[datetime] = None) -> str:
    """Coarse relative time, e.g. '3 hours ago'."""
    seconds = max(0.0, ((now or utc_now()) - then).total_seconds())
    for size, unit in _TIME_UNITS:
        interval = seconds / size
        if interval > 1:
            return f"{math.floor(interval)} {unit} ago"
    return f"{math.floor(seconds)} seconds ago"


def format_epicentre(location: Coordinates) -> str:
    ns = "N" if location.lat >= 0 else "S"
    ew = "E" if location.lng >= 0 else "W"
    return f"{abs(location.lat):.4f}°{ns}, {abs(location.lng):.4f}°{ew}"


def format_timestamp(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class EarthquakeSummary:
    title: str
    magnitude: Optional[float]
    magnitude_warning: bool
    depth: str
    epicentre: str
    time: str
    aftershock_forecast: Optional[str]
    tsunami_warning: bool


def summarize_earthquake(events: Sequence[CrisisEvent], now: Optional[datetime] = None) -> Optional[EarthquakeSummary]:
    """Summary of the first earthquake in ``events``, or None."""
    quake = next((e for e in events if e.type == "earthquake"), None)
    if quake is None:
        return None

    magnitude = quake.details.get("magnitude")
    depth = quake.details.get("depth_km")
    return EarthquakeSummary(
        title=quake.title,
        magnitude=magnitude,
        magnitude_warning=magnitude is not None and magnitude >= MAGNITUDE_WARNING,
        depth=f"{depth:.1f} km" if depth is not None else "Unknown",
        epicentre=format_epicentre(quake.location),
        time=f"{quake.time.astimezone().strftime('%H:%M:%S')} ({time_ago(quake.time, now)})",
        aftershock_forecast=quake.details.get("aftershock_probability_24h"),
        tsunami_warning=bool(quake.details.get("tsunami_warning")),
    )


def weather_alerts(events: Sequence[CrisisEvent]) -> List[CrisisEvent]:
    return [e for e in events if e.type == "weather_alert"]
