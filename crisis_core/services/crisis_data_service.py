# =============================================================================
# crisis_core/services/crisis_data_service.py
# Cache-then-fetch hazard data and the displayed crisis event feed
# =============================================================================
"""
Crisis data fetching.

``CrisisDataFetcher`` wraps one HazardSource behind a cache-then-fetch policy:

    fetch(location)
        offline           -> last cached list (or []), cache untouched
        cache fresh + same location -> cached list, no network call
        otherwise         -> source.fetch_events(); success is cached,
                             failure returns [] and keeps the old cache;
                             an unreachable source signals the monitor offline

``CrisisFeed`` combines several fetchers into the event list shown on the
dashboard and discards stale completions (last-requested-wins).
"""

from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from crisis_core.api.base_connector import HazardSource
from crisis_core.errors import HazardFetchError
from crisis_core.logging import get_logger, LogContext
from crisis_core.models import Coordinates, CrisisEvent, events_from_dicts, events_to_dicts
from crisis_core.offline import ConnectivityMonitor
from crisis_core.state.persistent_state import PersistentBinding

logger = get_logger(__name__)

SEISMIC_CACHE_TTL = 5 * 60
WEATHER_CACHE_TTL = 15 * 60


@dataclass
class CacheEntry:
    events: List[CrisisEvent]
    location: Coordinates
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": events_to_dicts(self.events),
            "location": self.location.to_dict(),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CacheEntry:
        return cls(
            events=events_from_dicts(data.get("events", [])),
            location=Coordinates.from_dict(data["location"]),
            timestamp=float(data["timestamp"]),
        )


def decode_crisis_cache(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Decoder for the ``crisis_data_cache`` binding; keeps entries as dicts."""
    if not isinstance(raw, dict):
        raise ValueError("crisis data cache must be an object")
    return raw


class CrisisDataFetcher:
    """
    Cache-backed hazard fetch for one source.

    Args:
        source: HazardSource to query
        monitor: ConnectivityMonitor consulted on every call
        cache_ttl_seconds: validity window of a cached result
        clock: wall-clock seconds (cache timestamps are persisted)
        cache_binding: optional persistent binding shared by all fetchers,
            holding ``{cache_name: CacheEntry.to_dict()}``
        fetch_kwargs: extra arguments for the source (radius, magnitude, ...)
    """

    def __init__(
        self,
        source: HazardSource,
        monitor: ConnectivityMonitor,
        cache_ttl_seconds: float = SEISMIC_CACHE_TTL,
        clock: Callable[[], float] = time.time,
        cache_binding: Optional[PersistentBinding] = None,
        fetch_kwargs: Optional[Dict[str, Any]] = None,
        cache_name: Optional[str] = None,
    ):
        self.source = source
        self.monitor = monitor
        self.cache_ttl_seconds = cache_ttl_seconds
        self.clock = clock
        self.cache_binding = cache_binding
        self.fetch_kwargs = dict(fetch_kwargs or {})
        self.cache_name = cache_name or source.name
        self._cache: Optional[CacheEntry] = self._restore_cache()

    def _restore_cache(self) -> Optional[CacheEntry]:
        if self.cache_binding is None:
            return None
        stored = (self.cache_binding.get() or {}).get(self.cache_name)
        if not stored:
            return None
        try:
            return CacheEntry.from_dict(stored)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable {self.cache_name} cache: {e}")
            return None

    @property
    def cached(self) -> Optional[CacheEntry]:
        return self._cache

    def is_fresh(self, location: Coordinates) -> bool:
        entry = self._cache
        return (
            entry is not None
            and entry.location.same_point(location)
            and self.clock() - entry.timestamp < self.cache_ttl_seconds
        )

    def fetch(self, location: Coordinates) -> List[CrisisEvent]:
        if not self.monitor.is_online:
            logger.info(f"Offline: serving last known {self.cache_name} data")
            return self._cache.events if self._cache else []

        if self.is_fresh(location):
            logger.info(f"Returning cached {self.cache_name} data.")
            return self._cache.events

        try:
            events = self.source.fetch_events(location, **self.fetch_kwargs)
        except HazardFetchError as e:
            logger.error(f"Failed to fetch {self.cache_name} data: {e}")
            if e.unreachable:
                self.monitor.handle_offline()
            return []
        except Exception as e:
            logger.error(f"Failed to fetch {self.cache_name} data: {e}")
            return []

        entry = CacheEntry(events=list(events), location=location, timestamp=self.clock())
        self._cache = entry
        if self.cache_binding is not None:
            self.cache_binding.set(lambda stored: {**(stored or {}), self.cache_name: entry.to_dict()})
        logger.info(f"Fetched {len(entry.events)} new events from {self.cache_name}.")
        return entry.events


# =============================================================================
# DISPLAYED FEED
# =============================================================================

@dataclass(frozen=True)
class RefreshTicket:
    generation: int
    location: Coordinates
    online: bool


@dataclass
class FeedState:
    events: List[CrisisEvent] = field(default_factory=list)
    location: Optional[Coordinates] = None
    generation: int = 0
    applied_generation: int = 0
    updated_at: Optional[float] = None


class CrisisFeed:
    """
    The crisis event list shown on the dashboard.

    Usage:
        ticket = feed.begin_refresh(location_a)
        ...                              # a later refresh may start meanwhile
        feed.complete_refresh(ticket, events)   # ignored if not the newest

    An offline refresh never clears what is displayed; it only fills an empty
    display from cached data.
    """

    def __init__(
        self,
        fetchers: Sequence[CrisisDataFetcher],
        monitor: ConnectivityMonitor,
        clock: Callable[[], float] = time.time,
    ):
        self.fetchers = list(fetchers)
        self.monitor = monitor
        self.clock = clock
        self._state = FeedState()
        self._lock = threading.Lock()

    @property
    def events(self) -> List[CrisisEvent]:
        return self._state.events

    @property
    def state(self) -> FeedState:
        return self._state

    def begin_refresh(self, location: Coordinates) -> RefreshTicket:
        with self._lock:
            self._state.generation += 1
            return RefreshTicket(
                generation=self._state.generation,
                location=location,
                online=self.monitor.is_online,
            )

    def gather(self, location: Coordinates) -> List[CrisisEvent]:
        events: List[CrisisEvent] = []
        for fetcher in self.fetchers:
            events.extend(fetcher.fetch(location))
        return events

    def complete_refresh(self, ticket: RefreshTicket, events: List[CrisisEvent]) -> bool:
        """Apply ``events`` if ``ticket`` is the newest refresh. Returns whether applied."""
        with self._lock:
            if ticket.generation != self._state.generation:
                logger.debug(
                    f"Discarding stale crisis refresh #{ticket.generation} "
                    f"(latest #{self._state.generation})"
                )
                return False
            if not ticket.online and (self._state.events or not events):
                return False
            self._state.events = list(events)
            self._state.location = ticket.location
            self._state.applied_generation = ticket.generation
            self._state.updated_at = self.clock()
            return True

    def refresh(self, location: Coordinates) -> List[CrisisEvent]:
        ticket = self.begin_refresh(location)
        with LogContext(logger, "Refreshing crisis data"):
            events = self.gather(location)
        self.complete_refresh(ticket, events)
        return self.events
