# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import itertools
import json
import random
from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import MagicMock

import pytest

from crisis_core.models import Coordinates, CrisisEvent


T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
USER_LOCATION = Coordinates(37.7749, -122.4194)


# =============================================================================
# CLOCKS AND IDS
# =============================================================================

class FakeClock:
    """Float-seconds clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Aware-datetime clock advanced by hand."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}_{next(counter)}"


# =============================================================================
# STATE / CONNECTIVITY
# =============================================================================

@pytest.fixture
def memory_backend():
    from crisis_core.state.persistent_state import MemoryKeyValueBackend
    return MemoryKeyValueBackend()


@pytest.fixture
def state_store(memory_backend):
    from crisis_core.state.persistent_state import PersistentStateStore
    return PersistentStateStore(memory_backend)


@pytest.fixture
def monitor():
    from crisis_core.offline import ConnectivityMonitor
    return ConnectivityMonitor(initial_online=True)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def circle_store(date_clock, id_factory):
    from crisis_core.services import CircleStore
    return CircleStore(clock=date_clock, id_factory=id_factory)


@pytest.fixture
def sample_circle(circle_store):
    """The Johnsons, as seeded by the setup form."""
    from crisis_core.services import DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS
    return circle_store.create(DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS)


def make_earthquake(magnitude: float = 5.8, event_id: str = "us7000abcd", when: datetime = T0) -> CrisisEvent:
    return CrisisEvent(
        id=event_id,
        type="earthquake",
        title=f"M {magnitude} - 10km NW of San Francisco, CA",
        severity="major",
        location=Coordinates(37.80, -122.47),
        time=when,
        details={
            "magnitude": magnitude,
            "depth_km": 8.2,
            "aftershock_probability_24h": "Moderate (30-60%)",
            "tsunami_warning": False,
            "source": "USGS",
        },
    )


@pytest.fixture
def sample_events() -> List[CrisisEvent]:
    weather = CrisisEvent(
        id="noaa_1",
        type="weather_alert",
        title="Severe Thunderstorm Warning",
        severity="moderate",
        location=Coordinates(37.8749, -122.5194),
        time=T0,
        details={"headline": "Storm moving east", "source": "Mock NOAA/NWS Data"},
    )
    return [make_earthquake(), weather]


class StaticHazardSource:
    """HazardSource double that counts calls and can be told to fail."""

    def __init__(self, name: str = "Static", events: List[CrisisEvent] = None):
        self.name = name
        self.events = list(events or [])
        self.calls = 0
        self.error = None

    def fetch_events(self, location, **kwargs):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.events)

    def fetch(self, location, **kwargs):
        try:
            return self.fetch_events(location, **kwargs)
        except Exception:
            return []


@pytest.fixture
def hazard_source(sample_events):
    return StaticHazardSource(events=sample_events[:1])


# =============================================================================
# AI FIXTURES
# =============================================================================

def completion(content):
    """Shape of an OpenAI chat completion carrying ``content``."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def plan_payload():
    return {
        "triage_analysis": {
            "priority_list": [
                {"name": "Grandma May", "reason": "Reported injured and lives alone."},
                {"name": "Emma Johnson", "reason": "Last status was HELP."},
            ],
            "assessment": "Two members need attention; the rest are safe.",
        },
        "logistics_plan": {
            "meetup_points": [
                {
                    "rank": 2,
                    "name": "Mission Branch Library",
                    "address": "300 Bartlett St, San Francisco, CA",
                    "reason": "Sturdy building, away from the bay.",
                    "routes": [
                        {
                            "memberName": "Mike Johnson",
                            "route": {
                                "duration": "20 min drive",
                                "distance": "4 mi",
                                "traffic_level": "Heavy",
                                "hazards": ["Debris on Market St"],
                                "viable": False,
                            },
                        }
                    ],
                    "coordinates": {"lat": 37.7502, "lng": -122.4195},
                },
                {
                    "rank": 1,
                    "name": "Dolores Park",
                    "address": "Dolores St & 19th St, San Francisco, CA",
                    "reason": "Open space, clear of structures.",
                    "routes": [
                        {
                            "memberName": "Mike Johnson",
                            "route": {
                                "duration": "15 min walk",
                                "distance": "0.8 mi",
                                "traffic_level": "Light",
                                "hazards": [],
                                "viable": True,
                            },
                        }
                    ],
                    "coordinates": {"lat": 37.7596, "lng": -122.4269},
                },
            ],
            "movement_plan": "Move to Dolores Park once aftershocks ease.",
            "supply_recommendations": ["Water", "First aid kit"],
        },
        "medical_assessment": {
            "member_assessments": [
                {"name": "Grandma May", "needs": "Possible arm fracture", "instructions": "Immobilise the arm."}
            ],
            "overall_recommendation": "Seek urgent care for Grandma May.",
        },
        "prediction_forecast": {
            "timeline": [{"time": "Next 30 Mins", "prediction": "Aftershocks likely."}],
            "secondary_hazards": ["Gas leaks", "Falling glass"],
        },
        "synthesized_plan": {
            "urgency_level": "URGENT",
            "priority_actions": ["Reach Grandma May", "Stay clear of buildings"],
            "reassurance_message": "You have a plan. Take it one step at a time.",
        },
    }


@pytest.fixture
def fake_openai(plan_payload):
    """OpenAI client double; ``responses`` is consumed in call order."""
    client = MagicMock()
    client.responses = [json.dumps(plan_payload)]

    def create(**kwargs):
        content = client.responses.pop(0) if len(client.responses) > 1 else client.responses[0]
        if isinstance(content, Exception):
            raise content
        return completion(content)

    client.chat.completions.create.side_effect = create
    return client


@pytest.fixture
def orchestrator(monitor, fake_openai):
    from crisis_core.ai import AIPlanOrchestrator
    from crisis_core.config import AISettings
    return AIPlanOrchestrator(monitor, client=fake_openai, settings=AISettings(api_key="test-key"))


# =============================================================================
# DASHBOARD
# =============================================================================

@pytest.fixture
def services(state_store, monitor, orchestrator, hazard_source, date_clock, id_factory, tmp_path):
    """Dashboard collaborators with deterministic time, ticks and location."""
    from crisis_core.api import LocationResolver, StaticLocationProvider
    from crisis_core.services import (
        CircleStore,
        CrisisDataFetcher,
        CrisisFeed,
        PreparednessService,
        VoiceNoteService,
    )
    from crisis_core.simulation import ManualScheduler
    from crisis_core.state.dashboard_controller import DashboardServices

    return DashboardServices(
        store=CircleStore(clock=date_clock, id_factory=id_factory),
        state_store=state_store,
        monitor=monitor,
        feed=CrisisFeed([CrisisDataFetcher(hazard_source, monitor)], monitor),
        orchestrator=orchestrator,
        resolver=LocationResolver(StaticLocationProvider(USER_LOCATION), timeout=1.0),
        preparedness=PreparednessService(),
        voice_notes=VoiceNoteService(tmp_path / "voice_notes"),
        scheduler=ManualScheduler(),
        rng=random.Random(7),
    )


@pytest.fixture
def controller(services):
    from crisis_core.state.dashboard_controller import DashboardController

    notification_clock = FakeClock()
    ctrl = DashboardController(services, clock=notification_clock)
    ctrl.notification_clock = notification_clock
    yield ctrl
    ctrl.shutdown()


# =============================================================================
# STREAMLIT
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for the modules that render or read secrets"""
    import crisis_core.config.settings as settings_module
    import crisis_core.errors.handlers as handlers_module

    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.secrets = {}

    monkeypatch.setattr(settings_module, "st", mock_st)
    monkeypatch.setattr(handlers_module, "st", mock_st)
    yield mock_st
