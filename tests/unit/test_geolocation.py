# =============================================================================
# tests/unit/test_geolocation.py
# Unit Tests for location providers and the resolver
# =============================================================================

import threading
from unittest.mock import MagicMock

import pytest
import requests

from crisis_core.api import (
    DEFAULT_LOCATION,
    IPGeolocationProvider,
    LocationOptions,
    LocationProvider,
    LocationResolver,
    LocationUnavailable,
    StaticLocationProvider,
)
from crisis_core.api.geolocation import FALLBACK_WARNING
from crisis_core.models import Coordinates
from tests.conftest import FakeClock

HOME = Coordinates(40.7128, -74.0060, 20.0)


class BlockingProvider(LocationProvider):
    """Never answers until released."""

    def __init__(self):
        self.release = threading.Event()

    def get_position(self, options):
        self.release.wait(timeout=5.0)
        return HOME


@pytest.fixture
def ip_session():
    session = MagicMock()
    response = MagicMock()
    response.json.return_value = {"latitude": 51.5074, "longitude": -0.1278, "city": "London"}
    session.get.return_value = response
    return session


class TestLocationResolver:

    def test_provider_position_used(self):
        resolver = LocationResolver(StaticLocationProvider(HOME), timeout=1.0)
        result = resolver.resolve()

        assert result.location == HOME
        assert not result.is_fallback
        assert resolver.current == result

    def test_denied_falls_back_with_warning(self):
        result = LocationResolver(StaticLocationProvider(None), timeout=1.0).resolve()

        assert result.location == DEFAULT_LOCATION
        assert result.is_fallback
        assert result.warning == FALLBACK_WARNING

    def test_timeout_falls_back(self):
        provider = BlockingProvider()
        resolver = LocationResolver(provider, timeout=0.05)
        try:
            result = resolver.resolve()
        finally:
            provider.release.set()
            resolver.shutdown()

        assert result.is_fallback
        assert result.location == DEFAULT_LOCATION

    def test_custom_fallback(self):
        result = LocationResolver(StaticLocationProvider(None), timeout=1.0, fallback=HOME).resolve()
        assert result.location == HOME


class TestIPGeolocationProvider:

    def test_position_from_ip_lookup(self, ip_session):
        location = IPGeolocationProvider(session=ip_session).get_position(LocationOptions())

        assert location.lat == pytest.approx(51.5074)
        assert location.lng == pytest.approx(-0.1278)
        assert location.accuracy == IPGeolocationProvider.IP_ACCURACY_METERS

    def test_request_failure_is_unavailable(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("no route")
        with pytest.raises(LocationUnavailable):
            IPGeolocationProvider(session=session).get_position(LocationOptions())

    def test_missing_fields_is_unavailable(self, ip_session):
        ip_session.get.return_value.json.return_value = {"error": True}
        with pytest.raises(LocationUnavailable):
            IPGeolocationProvider(session=ip_session).get_position(LocationOptions())

    def test_max_age_reuses_recent_result(self, ip_session):
        clock = FakeClock()
        provider = IPGeolocationProvider(session=ip_session, clock=clock)
        options = LocationOptions(max_age=60)

        provider.get_position(options)
        clock.advance(30)
        provider.get_position(options)
        assert ip_session.get.call_count == 1

        clock.advance(31)
        provider.get_position(options)
        assert ip_session.get.call_count == 2

    def test_zero_max_age_always_requests(self, ip_session):
        provider = IPGeolocationProvider(session=ip_session)
        provider.get_position(LocationOptions())
        provider.get_position(LocationOptions())
        assert ip_session.get.call_count == 2
