"""
Weather Alert Connectors
Supports the NWS active-alerts API and a deterministic mock for demos/offline dev
"""
from datetime import datetime
from typing import Callable, List, Optional

import pandas as pd
import requests

from crisis_core.errors import HazardFetchError
from crisis_core.models import Coordinates, CrisisEvent, from_iso, utc_now

from .base_connector import APIConfig, BaseAPIConnector, HazardSource

NWS_BASE_URL = "https://api.weather.gov"

# NWS severity vocabulary -> CrisisEvent severity
NWS_SEVERITY_MAP = {
    "Minor": "minor",
    "Moderate": "moderate",
    "Severe": "major",
    "Extreme": "catastrophic",
}


class MockWeatherAlertConnector(HazardSource):
    """
    Mock weather alert source.

    Always reports one severe thunderstorm warning slightly north-west of the
    requested location. Useful until a real alerts feed is configured.
    """

    name = "Mock NOAA"

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now

    def fetch_events(self, location: Coordinates, **kwargs) -> List[CrisisEvent]:
        now = self._clock()
        alert = CrisisEvent(
            id=f"noaa_{int(now.timestamp() * 1000)}",
            type="weather_alert",
            title="Severe Thunderstorm Warning",
            severity="moderate",
            location=Coordinates(lat=location.lat + 0.1, lng=location.lng - 0.1),
            time=now,
            details={
                "event": "Severe Thunderstorm Warning",
                "headline": "A severe thunderstorm was located near your area, moving east at 30 mph.",
                "description": "Expect quarter-sized hail and wind gusts up to 60 mph. Seek shelter in a sturdy building.",
                "instruction": "Move to an interior room on the lowest floor of a building. Avoid windows.",
                "source": "Mock NOAA/NWS Data",
            },
        )
        return [alert]


class NWSWeatherAlertConnector(BaseAPIConnector):
    """
    Connector for the National Weather Service active alerts API.

    Alerts are area polygons; the event location is the query point since the
    alert applies to it.
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        session: Optional[requests.Session] = None,
        user_agent: str = "family-crisis-hub (contact@example.com)",
    ):
        config = config or APIConfig(
            api_name="NWS",
            base_url=NWS_BASE_URL,
            headers={"User-Agent": user_agent, "Accept": "application/geo+json"},
        )
        super().__init__(config, session)
        self._query_location: Optional[Coordinates] = None

    def fetch_data(self, location: Coordinates, **kwargs) -> pd.DataFrame:
        self._query_location = location
        response = self._make_request(
            endpoint="alerts/active",
            params={"point": f"{location.lat:.4f},{location.lng:.4f}"},
        )
        if not self.validate_response(response):
            raise HazardFetchError("NWS response is not a GeoJSON feature collection", source="NWS")

        features = response.json()["features"]
        return pd.DataFrame([feature.get("properties", {}) for feature in features])

    def map_to_events(self, raw_data: pd.DataFrame) -> List[CrisisEvent]:
        location = self._query_location
        # Alerts omit optional fields; keep them as None instead of NaN
        raw_data = raw_data.astype(object).where(raw_data.notna(), None)
        events = []
        for row in raw_data.to_dict(orient="records"):
            sent = row.get("sent") or row.get("effective")
            events.append(
                CrisisEvent(
                    id=str(row.get("id")),
                    type="weather_alert",
                    title=row.get("event") or "Weather Alert",
                    severity=NWS_SEVERITY_MAP.get(row.get("severity"), "minor"),
                    location=location,
                    time=from_iso(sent) if sent else utc_now(),
                    details={
                        "event": row.get("event"),
                        "headline": row.get("headline"),
                        "description": row.get("description"),
                        "instruction": row.get("instruction"),
                        "source": "NOAA/NWS",
                    },
                )
            )
        return events
