"""
USGS Earthquake Connector
Recent earthquakes from the USGS FDSN event service (GeoJSON)
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pandas as pd
import requests

from crisis_core.errors import HazardFetchError
from crisis_core.models import Coordinates, CrisisEvent, from_iso, utc_now

from .base_connector import APIConfig, BaseAPIConnector

USGS_BASE_URL = "https://earthquake.usgs.gov/fdsnws/event/1"

FEATURE_COLUMNS = [
    "id",
    "properties.mag",
    "properties.title",
    "properties.time",
    "properties.tsunami",
    "properties.url",
    "geometry.coordinates",
]


def severity_from_magnitude(magnitude: float) -> str:
    """Simple severity level from earthquake magnitude."""
    if magnitude < 4.5:
        return "minor"
    if magnitude < 5.5:
        return "moderate"
    if magnitude < 6.5:
        return "major"
    return "catastrophic"


def aftershock_risk(magnitude: float) -> str:
    """Simplified 24h aftershock probability for a main shock."""
    if magnitude < 5.0:
        return "Low (less than 30%)"
    if magnitude < 6.0:
        return "Moderate (30-60%)"
    if magnitude < 7.0:
        return "High (60-85%)"
    return "Very High (>85%)"


class USGSEarthquakeConnector(BaseAPIConnector):
    """
    Connector for the USGS earthquake catalogue.

    Queries the last 24 hours around a point. No API key required.
    """

    LOOKBACK = timedelta(hours=24)

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(config or APIConfig(api_name="USGS", base_url=USGS_BASE_URL), session)
        self._clock = clock or utc_now

    def fetch(
        self,
        location: Coordinates,
        radius_km: float = 100,
        min_magnitude: float = 4.0,
        **kwargs,
    ) -> List[CrisisEvent]:
        return super().fetch(location, radius_km=radius_km, min_magnitude=min_magnitude)

    def build_params(self, location: Coordinates, radius_km: float, min_magnitude: float) -> dict:
        start = (self._clock() - self.LOOKBACK).astimezone(timezone.utc)
        return {
            "format": "geojson",
            "starttime": start.strftime("%Y-%m-%dT%H:%M:%S"),
            "latitude": location.lat,
            "longitude": location.lng,
            "maxradiuskm": radius_km,
            "minmagnitude": min_magnitude,
        }

    def fetch_data(self, location: Coordinates, radius_km: float = 100, min_magnitude: float = 4.0, **kwargs) -> pd.DataFrame:
        response = self._make_request(
            endpoint="query",
            params=self.build_params(location, radius_km, min_magnitude),
        )
        if not self.validate_response(response):
            raise HazardFetchError("USGS response is not a GeoJSON feature collection", source="USGS")

        features = response.json()["features"]
        if not features:
            return pd.DataFrame(columns=FEATURE_COLUMNS)
        return pd.json_normalize(features)

    def map_to_events(self, raw_data: pd.DataFrame) -> List[CrisisEvent]:
        events = []
        for row in raw_data.to_dict(orient="records"):
            magnitude = float(row["properties.mag"])
            lng, lat, depth = row["geometry.coordinates"][:3]
            events.append(
                CrisisEvent(
                    id=str(row["id"]),
                    type="earthquake",
                    title=row["properties.title"],
                    severity=severity_from_magnitude(magnitude),
                    location=Coordinates(lat=float(lat), lng=float(lng)),
                    time=parse_event_time(row["properties.time"]),
                    details={
                        "magnitude": magnitude,
                        "depth_km": depth,
                        "aftershock_probability_24h": aftershock_risk(magnitude),
                        "tsunami_warning": bool(row.get("properties.tsunami") == 1),
                        "source_url": row.get("properties.url"),
                        "source": "USGS",
                    },
                )
            )
        return events


def parse_event_time(value) -> datetime:
    """Accept epoch milliseconds or ISO strings."""
    if isinstance(value, str):
        return from_iso(value)
    return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
