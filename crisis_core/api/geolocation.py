"""
Device Location Providers
One-shot position lookup with a bounded wait and a fixed fallback coordinate
"""
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from crisis_core.logging import get_logger
from crisis_core.models import Coordinates

logger = get_logger(__name__)

# San Francisco City Hall
DEFAULT_LOCATION = Coordinates(lat=37.7749, lng=-122.4194)

FALLBACK_WARNING = (
    "Could not get your location. Using a default location (San Francisco) for demonstration."
)


class LocationUnavailable(Exception):
    """Position could not be acquired (denied, unsupported or failed lookup)."""


@dataclass(frozen=True)
class LocationOptions:
    high_accuracy: bool = True
    timeout: float = 10.0
    max_age: float = 0.0


@dataclass(frozen=True)
class LocationResult:
    location: Coordinates
    is_fallback: bool = False
    warning: Optional[str] = None


class LocationProvider(ABC):

    @abstractmethod
    def get_position(self, options: LocationOptions) -> Coordinates:
        """Return the current position or raise ``LocationUnavailable``."""


class StaticLocationProvider(LocationProvider):
    """Fixed position; ``None`` behaves like a denied permission."""

    def __init__(self, location: Optional[Coordinates] = None):
        self.location = location

    def get_position(self, options: LocationOptions) -> Coordinates:
        if self.location is None:
            raise LocationUnavailable("Location permission denied")
        return self.location


class IPGeolocationProvider(LocationProvider):
    """
    Approximate position from the public IP address.

    IP lookups are city-level; ``high_accuracy`` cannot improve them and is
    accepted for interface parity. A result younger than ``max_age`` seconds is
    reused without a new request.
    """

    IP_ACCURACY_METERS = 5000.0

    def __init__(
        self,
        url: str = "https://ipapi.co/json/",
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.session = session or requests.Session()
        self._clock = clock
        self._cached: Optional[Coordinates] = None
        self._cached_at = 0.0

    def get_position(self, options: LocationOptions) -> Coordinates:
        now = self._clock()
        if self._cached is not None and options.max_age > 0 and now - self._cached_at <= options.max_age:
            return self._cached

        try:
            response = self.session.get(self.url, timeout=options.timeout)
            response.raise_for_status()
            data = response.json()
            location = Coordinates(
                lat=float(data["latitude"]),
                lng=float(data["longitude"]),
                accuracy=self.IP_ACCURACY_METERS,
            )
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as e:
            raise LocationUnavailable(f"IP geolocation failed: {e}")

        self._cached = location
        self._cached_at = now
        return location


class LocationResolver:
    """
    Resolves the device location for the dashboard.

    Usage:
        resolver = LocationResolver(IPGeolocationProvider(), timeout=10)
        result = resolver.resolve()
        if result.is_fallback:
            show_warning(result.warning)

    The provider runs on a worker thread so a hung lookup cannot block past
    ``timeout``. Every failure mode lands on ``DEFAULT_LOCATION``. Only the
    newest resolution may update ``current``.
    """

    def __init__(
        self,
        provider: LocationProvider,
        timeout: float = 10.0,
        fallback: Coordinates = DEFAULT_LOCATION,
        options: Optional[LocationOptions] = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self.fallback = fallback
        self.options = options or LocationOptions(timeout=timeout)
        self.current: Optional[LocationResult] = None
        self._generation = 0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="Geolocation")

    def resolve(self) -> LocationResult:
        with self._lock:
            self._generation += 1
            generation = self._generation

        future = self._executor.submit(self.provider.get_position, self.options)
        try:
            result = LocationResult(location=future.result(timeout=self.timeout))
        except FutureTimeout:
            result = self.fallback_result(f"timed out after {self.timeout}s")
        except Exception as e:
            result = self.fallback_result(str(e))

        with self._lock:
            if generation == self._generation:
                self.current = result
        return result

    def fallback_result(self, reason: str) -> LocationResult:
        """The default location, used without asking the provider."""
        logger.warning(f"Geolocation unavailable ({reason}); using default location")
        return LocationResult(self.fallback, is_fallback=True, warning=FALLBACK_WARNING)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
