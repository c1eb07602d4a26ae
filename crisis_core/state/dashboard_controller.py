# =============================================================================
# crisis_core/state/dashboard_controller.py
# Dashboard state and actions, independent of the Streamlit rendering
# =============================================================================
"""
DashboardController - everything the dashboard shows and every action it offers.

Owns:
- active view (crisis / preparedness) and crisis sub-tab
- loading flags per async operation
- the notification queue (auto-dismiss after a fixed duration)
- the displayed circle, reconciled with simulation pushes
- check-in log and inline errors per control

All user actions return a ServiceResult; failures become notifications or
inline messages and never escape. The Streamlit layer (``crisis_core.ui``)
only reads this state and calls these actions.
"""

from __future__ import annotations
import itertools
import random
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from crisis_core.ai.plan_orchestrator import AIPlanOrchestrator
from crisis_core.api import (
    IPGeolocationProvider,
    LocationOptions,
    LocationResolver,
    LocationResult,
    MockWeatherAlertConnector,
    NWSWeatherAlertConnector,
    StaticLocationProvider,
    USGSEarthquakeConnector,
    DEFAULT_LOCATION,
)
from crisis_core.api.base_connector import APIConfig
from crisis_core.api.usgs_connector import USGS_BASE_URL
from crisis_core.config.settings import AppSettings
from crisis_core.errors import CrisisHubError, NotFoundError, OfflineError
from crisis_core.logging import get_logger
from crisis_core.models import (
    COMPLETE,
    INCOMPLETE,
    STATUS_LABELS,
    Coordinates,
    CrisisEvent,
    FamilyCircle,
    Member,
    MultiAgentPlan,
    PreparednessPlan,
    StatusType,
    utc_now,
)
from crisis_core.offline import ConnectionState, ConnectivityMonitor
from crisis_core.services import (
    CircleStore,
    CrisisDataFetcher,
    CrisisFeed,
    PreparednessService,
    ServiceResult,
    Subscription,
    VoiceNoteService,
    decode_crisis_cache,
    validate_circle_form,
)
from crisis_core.simulation import Scheduler, IntervalScheduler

from .optimistic import OptimisticCommand
from .persistent_state import (
    AI_PLAN_KEY,
    CIRCLE_KEY,
    CRISIS_CACHE_KEY,
    PREPAREDNESS_KEY,
    THEME_KEY,
    FileKeyValueBackend,
    PersistentStateStore,
)

logger = get_logger(__name__)

VIEWS = ("crisis", "preparedness")
CRISIS_TABS = ("status", "map", "hazards", "plan", "checkin")
THEMES = ("dark", "light")

OFFLINE_BANNER = "You are currently offline. Some features may be unavailable."

NOTIFICATION_KINDS = ("success", "error", "warning", "info")

SAMPLE_CHECKIN_MESSAGES = (
    "I'm safe at home. Power is out but we're okay.",
    "Help, we're stuck at the bridge on 5th street. The road is flooded.",
    "I fell and hurt my leg pretty bad. I'm at the library. Need medical attention.",
    "we are fine",
)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    kind: str
    created_at: float


class NotificationQueue:
    """
    Dismissible notifications that expire ``duration`` seconds after creation.

    Expiry is evaluated lazily against the injected clock whenever the queue
    is read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, duration: float = 7.0):
        self.clock = clock
        self.duration = duration
        self._items: List[Notification] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def push(self, message: str, kind: str = "info") -> Notification:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        notification = Notification(next(self._ids), message, kind, self.clock())
        with self._lock:
            self._items.append(notification)
        return notification

    def dismiss(self, notification_id: int) -> None:
        with self._lock:
            self._items = [n for n in self._items if n.id != notification_id]

    def active(self) -> List[Notification]:
        now = self.clock()
        with self._lock:
            self._items = [n for n in self._items if now - n.created_at < self.duration]
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items = []

    def __len__(self) -> int:
        return len(self.active())


# =============================================================================
# DISPLAY HELPERS
# =============================================================================

@dataclass(frozen=True)
class CheckinLogEntry:
    id: int
    member_name: str
    original_message: str
    parsed_status: StatusType
    parsed_summary: str
    timestamp: datetime


def merge_members(displayed: FamilyCircle, pushed: FamilyCircle) -> FamilyCircle:
    """
    Reconcile a pushed circle into the displayed one.

    Members are matched by id; for each, the version with the newer
    ``last_update`` wins. Everything else about ``displayed`` is kept.
    """
    if pushed.id != displayed.id:
        return displayed
    merged = []
    for member in displayed.members:
        incoming = pushed.find_member(member.id)
        if incoming is not None and incoming.last_update >= member.last_update:
            merged.append(incoming)
        else:
            merged.append(member)
    return replace(displayed, members=tuple(merged))


@dataclass
class DashboardServices:
    """Collaborators the controller drives; built by ``build_services``."""
    store: CircleStore
    state_store: PersistentStateStore
    monitor: ConnectivityMonitor
    feed: CrisisFeed
    orchestrator: AIPlanOrchestrator
    resolver: LocationResolver
    preparedness: PreparednessService
    voice_notes: VoiceNoteService
    scheduler: Optional[Scheduler] = None
    rng: Optional[random.Random] = None


def build_services(
    settings: AppSettings,
    monitor: Optional[ConnectivityMonitor] = None,
    state_store: Optional[PersistentStateStore] = None,
    session_id: Optional[str] = None,
) -> DashboardServices:
    """
    Wire production collaborators from settings.

    ``session_id`` scopes persisted state to one browser session so that no
    two dashboards write the same keys.
    """
    monitor = monitor or ConnectivityMonitor()
    if state_store is None:
        state_store = PersistentStateStore(FileKeyValueBackend(settings.storage.session_state_dir(session_id)))
    cache_binding = state_store.binding(CRISIS_CACHE_KEY, {}, decoder=decode_crisis_cache)
    hazards = settings.hazards

    fetchers = [
        CrisisDataFetcher(
            USGSEarthquakeConnector(
                APIConfig(api_name="USGS", base_url=USGS_BASE_URL, timeout=hazards.request_timeout)
            ),
            monitor,
            cache_ttl_seconds=hazards.seismic_cache_ttl,
            cache_binding=cache_binding,
            fetch_kwargs={"radius_km": hazards.radius_km, "min_magnitude": hazards.min_magnitude},
        )
    ]
    if hazards.weather_provider == "mock":
        fetchers.append(
            CrisisDataFetcher(MockWeatherAlertConnector(), monitor, hazards.weather_cache_ttl, cache_binding=cache_binding)
        )
    elif hazards.weather_provider == "nws":
        fetchers.append(
            CrisisDataFetcher(
                NWSWeatherAlertConnector(user_agent=hazards.nws_user_agent),
                monitor,
                hazards.weather_cache_ttl,
                cache_binding=cache_binding,
            )
        )

    loc = settings.location
    if loc.provider == "static":
        static = None
        if loc.static_lat is not None and loc.static_lng is not None:
            static = Coordinates(loc.static_lat, loc.static_lng)
        provider = StaticLocationProvider(static)
    else:
        provider = IPGeolocationProvider()

    sim = settings.simulation
    return DashboardServices(
        store=CircleStore(rules=sim.rules),
        state_store=state_store,
        monitor=monitor,
        feed=CrisisFeed(fetchers, monitor),
        orchestrator=AIPlanOrchestrator(monitor, settings=settings.ai),
        resolver=LocationResolver(
            provider,
            timeout=loc.timeout,
            fallback=DEFAULT_LOCATION,
            options=LocationOptions(high_accuracy=loc.high_accuracy, timeout=loc.timeout, max_age=loc.max_age),
        ),
        preparedness=PreparednessService(),
        voice_notes=VoiceNoteService(Path(settings.storage.voice_notes_dir)),
        scheduler=IntervalScheduler(sim.interval_seconds),
        rng=random.Random(sim.seed),
    )


# =============================================================================
# CONTROLLER
# =============================================================================

class DashboardController:
    """
    Usage:
        controller = DashboardController(build_services(settings), settings)
        controller.mount()
        controller.generate_plan()
        controller.exit_circle()
    """

    def __init__(
        self,
        services: DashboardServices,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
    ):
        self.services = services
        self.settings = settings or AppSettings()
        self.now = now

        self.view = "crisis"
        self.crisis_tab = "status"
        self.loading: Dict[str, bool] = {
            "mount": False,
            "crisis_data": False,
            "plan": False,
            "checkin": False,
            "voice_note": False,
            "preparedness": False,
        }
        self.notifications = NotificationQueue(clock, self.settings.notification_seconds)
        self.circle: Optional[FamilyCircle] = None
        self.location: Optional[LocationResult] = None
        self.location_warning: Optional[str] = None
        self.checkin_log: List[CheckinLogEntry] = []
        self.errors: Dict[str, Optional[str]] = {"plan": None, "checkin": None, "voice_note": None}
        self.mounted = False
        self.closed = False

        state = services.state_store
        self._theme = state.binding(THEME_KEY, "dark")
        self._circle = state.binding(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict)
        self._plan = state.binding(AI_PLAN_KEY, None, decoder=MultiAgentPlan.from_dict)
        self._preparedness = state.binding(PREPAREDNESS_KEY, None, decoder=PreparednessPlan.from_dict)

        self._subscription: Optional[Subscription] = None
        self._log_ids = itertools.count(1)
        self._lock = threading.RLock()
        services.monitor.register_callback(self._on_connectivity_change)

    # =========================================================================
    # READ-ONLY STATE
    # =========================================================================

    @property
    def theme(self) -> str:
        return self._theme.get()

    @property
    def plan(self) -> Optional[MultiAgentPlan]:
        return self._plan.get()

    @property
    def preparedness_plan(self) -> Optional[PreparednessPlan]:
        return self._preparedness.get()

    @property
    def events(self) -> List[CrisisEvent]:
        return self.services.feed.events

    @property
    def is_online(self) -> bool:
        return self.services.monitor.is_online

    @property
    def offline_banner(self) -> Optional[str]:
        return None if self.is_online else OFFLINE_BANNER

    @property
    def user_location(self) -> Coordinates:
        return self.location.location if self.location else DEFAULT_LOCATION

    @property
    def simulation_running(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # =========================================================================
    # MOUNT / LIFECYCLE
    # =========================================================================

    def mount(self) -> ServiceResult:
        """Resolve circle, location and hazard data, then start the simulation."""
        if self.mounted:
            return ServiceResult.ok(self.circle)

        self.loading["mount"] = True
        try:
            persisted = self._circle.get()
            if persisted is not None:
                self.services.store.restore(persisted)
            with self._lock:
                self.circle = self.services.store.get()

            if self._preparedness.get() is None:
                self._preparedness.set(self.services.preparedness.get_plan())

            if self.is_online:
                self.location = self.services.resolver.resolve()
            else:
                self.location = self.services.resolver.fallback_result("offline")
            if self.location.is_fallback:
                self.location_warning = self.location.warning
                self.notify(self.location.warning, "warning")

            self.refresh_crisis_data()
            if self.circle is not None:
                self._start_simulation()
            self.mounted = True
            return ServiceResult.ok(self.circle)
        finally:
            self.loading["mount"] = False

    def _start_simulation(self) -> None:
        if not self.settings.simulation.enabled or self.simulation_running:
            return
        self._subscription = self.services.store.subscribe_to_simulation(
            self._on_simulation_push,
            scheduler=self.services.scheduler,
            rng=self.services.rng,
        )

    def _stop_simulation(self) -> None:
        # Never call under self._lock: stop waits for an in-flight push, which takes it
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription()

    def _is_current(self, circle_id: str) -> bool:
        """Whether ``circle_id`` is still the circle both in the store and in persisted state."""
        current = self.services.store.get()
        if current is None or current.id != circle_id:
            return False
        persisted = self.services.state_store.load(CIRCLE_KEY, None)
        return isinstance(persisted, dict) and persisted.get("id") == circle_id

    def _on_simulation_push(self, pushed: FamilyCircle) -> None:
        with self._lock:
            if self.circle is None or self.circle.id != pushed.id:
                return
            if not self._is_current(pushed.id):
                logger.info(f"Dropping simulation push for circle {pushed.id}; it is no longer current")
                return
            merged = merge_members(self.circle, pushed)
            if merged == self.circle:
                return
            self.circle = merged
            self._circle.set(merged)

    def _on_connectivity_change(self, state: ConnectionState) -> None:
        if self.services.monitor.is_online:
            self.notify("Back online.", "info")
        else:
            self.notify(OFFLINE_BANNER, "warning")

    def _sync_from_store(self) -> Optional[FamilyCircle]:
        with self._lock:
            latest = self.services.store.get()
            if latest is None:
                self.circle = None
            elif self.circle is None or self.circle.id != latest.id:
                self.circle = latest
            else:
                self.circle = merge_members(self.circle, latest)
            self._circle.set(self.circle)
            return self.circle

    def shutdown(self) -> None:
        """Stop the simulation and release background workers; the controller is unusable afterwards."""
        self._stop_simulation()
        self.services.monitor.unregister_callback(self._on_connectivity_change)
        self.services.resolver.shutdown()
        self.closed = True

    # =========================================================================
    # NAVIGATION / PREFERENCES
    # =========================================================================

    def notify(self, message: str, kind: str = "info") -> None:
        self.notifications.push(message, kind)

    def set_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view}")
        self.view = view

    def set_crisis_tab(self, tab: str) -> None:
        if tab not in CRISIS_TABS:
            raise ValueError(f"Unknown crisis tab: {tab}")
        self.crisis_tab = tab

    def set_theme(self, theme: str) -> ServiceResult:
        if theme not in THEMES:
            return ServiceResult.fail(f"Unknown theme: {theme}", error_code="VALIDATION")
        self._theme.set(theme)
        return ServiceResult.ok(theme)

    def _begin(self, operation: str) -> bool:
        with self._lock:
            if self.loading.get(operation):
                return False
            self.loading[operation] = True
            return True

    def _end(self, operation: str) -> None:
        with self._lock:
            self.loading[operation] = False

    def _hard_failure(self, error: NotFoundError) -> ServiceResult:
        logger.error(f"Identity out of sync: {error}", extra={"details": error.details})
        self.notify(f"Something went wrong: {error.message}. Please reload the dashboard.", "error")
        return ServiceResult.from_exception(error)

    def _blocked_offline(self, action: str, error_slot: Optional[str] = None) -> Optional[ServiceResult]:
        if self.is_online:
            return None
        error = OfflineError(action=action)
        if error_slot:
            self.errors[error_slot] = error.message
        self.notify(error.message, "warning")
        return ServiceResult.from_exception(error)

    # =========================================================================
    # CIRCLE
    # =========================================================================

    def create_circle(self, name: str, member_seeds: Sequence[Dict[str, str]]) -> ServiceResult:
        problem = validate_circle_form(name, member_seeds)
        if problem:
            return ServiceResult.fail(problem, error_code="VALIDATION")

        self._stop_simulation()
        circle = self.services.store.create(name, member_seeds)
        with self._lock:
            self.circle = circle
            self._circle.set(circle)
        self._plan.reset()
        self.checkin_log = []
        self._start_simulation()
        self.notify(f"Family circle '{circle.name}' created.", "success")
        return ServiceResult.ok(circle)

    def exit_circle(self) -> ServiceResult:
        """Stop the simulation, then clear circle and plan and return to setup."""
        self._stop_simulation()
        self.services.store.clear()
        with self._lock:
            self.circle = None
            self._circle.reset()
            self._plan.reset()
            self.checkin_log = []
            self.errors = {key: None for key in self.errors}
            self.view = "crisis"
            self.crisis_tab = "status"
        self.notifications.clear()
        return ServiceResult.ok()

    def toggle_location_sharing(self, member_id: str) -> ServiceResult:
        try:
            member = self._member(member_id)
            updated = self.services.store.set_location_sharing(member_id, not member.is_location_shared)
        except NotFoundError as e:
            return self._hard_failure(e)
        self._sync_from_store()
        state = "enabled" if updated.is_location_shared else "disabled"
        self.notify(f"Location sharing {state} for {updated.name}.", "success")
        return ServiceResult.ok(updated)

    def update_member_status(self, member_id: str, status: StatusType, message: Optional[str] = None) -> ServiceResult:
        try:
            updated = self.services.store.update_member_status(member_id, status, message)
        except NotFoundError as e:
            return self._hard_failure(e)
        self._sync_from_store()
        return ServiceResult.ok(updated)

    def _member(self, member_id: str) -> Member:
        circle = self.services.store.get()
        member = circle.find_member(member_id) if circle else None
        if member is None:
            raise NotFoundError(f"Member {member_id} not found", entity="member", entity_id=member_id)
        return member

    # =========================================================================
    # CRISIS DATA
    # =========================================================================

    def refresh_crisis_data(self, location: Optional[Coordinates] = None) -> ServiceResult:
        location = location or self.user_location
        self.loading["crisis_data"] = True
        try:
            events = self.services.feed.refresh(location)
        finally:
            self.loading["crisis_data"] = False
        return ServiceResult.ok(events)

    # =========================================================================
    # AI PLAN
    # =========================================================================

    def generate_plan(self) -> ServiceResult:
        if self.circle is None:
            return ServiceResult.fail("Create a family circle first.", error_code="VALIDATION")
        if not self._begin("plan"):
            return ServiceResult.fail("A plan is already being generated.", error_code="BUSY")

        self.errors["plan"] = None
        try:
            plan = self.services.orchestrator.generate(self.circle, self.events, self.user_location)
        except OfflineError as e:
            self.errors["plan"] = e.message
            self.notify(e.message, "warning")
            return ServiceResult.from_exception(e)
        except CrisisHubError as e:
            self.errors["plan"] = e.message
            self.notify(e.message, "error")
            return ServiceResult.from_exception(e)
        finally:
            self._end("plan")

        self._plan.set(plan)
        self.notify("AI action plan ready.", "success")
        return ServiceResult.ok(plan)

    # =========================================================================
    # CHECK-INS
    # =========================================================================

    def submit_checkin(self, member_id: str, message: str) -> ServiceResult:
        if not member_id or not (message or "").strip():
            self.errors["checkin"] = "Please select a member and enter a message."
            return ServiceResult.fail(self.errors["checkin"], error_code="VALIDATION")
        if not self._begin("checkin"):
            return ServiceResult.fail("A check-in is already being processed.", error_code="BUSY")

        self.errors["checkin"] = None
        try:
            result = self.services.orchestrator.parse_checkin(message)
            member = self.services.store.update_member_status(member_id, result.status_type, result.summary)
        except NotFoundError as e:
            return self._hard_failure(e)
        except CrisisHubError as e:
            self.errors["checkin"] = e.message
            return ServiceResult.from_exception(e)
        finally:
            self._end("checkin")

        self._sync_from_store()
        entry = CheckinLogEntry(
            id=next(self._log_ids),
            member_name=member.name,
            original_message=message.strip(),
            parsed_status=result.status_type,
            parsed_summary=result.summary,
            timestamp=self.now(),
        )
        self.checkin_log.insert(0, entry)
        self.notify(f"{member.name} checked in: {STATUS_LABELS[result.status_type]}.", "success")
        return ServiceResult.ok(entry)

    # =========================================================================
    # VOICE NOTES
    # =========================================================================

    def record_voice_note(self, member_id: str, audio: bytes, mime_type: str = "audio/wav") -> ServiceResult:
        blocked = self._blocked_offline("Voice note recording", "voice_note")
        if blocked:
            return blocked
        if not self._begin("voice_note"):
            return ServiceResult.fail("A voice note is already being saved.", error_code="BUSY")

        self.errors["voice_note"] = None
        try:
            self._member(member_id)
            note_id, url = self.services.voice_notes.save(member_id, audio, mime_type)
            member = self.services.store.add_voice_note(member_id, url, note_id=note_id)
        except NotFoundError as e:
            return self._hard_failure(e)
        except CrisisHubError as e:
            self.errors["voice_note"] = e.message
            self.notify("Failed to save voice note.", "error")
            return ServiceResult.from_exception(e)
        finally:
            self._end("voice_note")

        self._sync_from_store()
        self.notify("Voice note saved successfully.", "success")
        return ServiceResult.ok(member)

    def delete_voice_note(self, member_id: str, note_id: str) -> ServiceResult:
        blocked = self._blocked_offline("Voice note deletion", "voice_note")
        if blocked:
            return blocked

        try:
            member = self._member(member_id)
            note = next((n for n in member.voice_notes if n.id == note_id), None)
            updated = self.services.store.delete_voice_note(member_id, note_id)
        except NotFoundError as e:
            return self._hard_failure(e)

        if note is not None:
            voice_notes = self.services.voice_notes
            removed = voice_notes.safe_execute("Removing voice note file", voice_notes.delete, note.url)
            if not removed:
                logger.warning(f"Voice note file not removed: {removed.error}")
        self._sync_from_store()
        self.notify("Voice note deleted.", "success")
        return ServiceResult.ok(updated)

    # =========================================================================
    # PREPAREDNESS
    # =========================================================================

    def toggle_preparedness_item(self, item_id: str) -> ServiceResult:
        blocked = self._blocked_offline("Updating the preparedness plan")
        if blocked:
            return blocked

        plan = self._preparedness.get()
        item = plan.find_item(item_id) if plan else None
        if item is None:
            return self._hard_failure(
                NotFoundError("Item not found", entity="preparedness_item", entity_id=item_id)
            )

        previous = item.status
        target = INCOMPLETE if item.is_complete else COMPLETE
        command = OptimisticCommand(
            name=f"Toggle '{item.name}'",
            apply=lambda p: p.with_item_status(item_id, target),
            inverse=lambda p: p.with_item_status(item_id, previous),
            confirm=lambda: self.services.preparedness.update_item_status(item_id, target),
        )

        self.loading["preparedness"] = True
        try:
            result = command.execute(self._preparedness)
        finally:
            self.loading["preparedness"] = False

        if not result:
            self.notify("Failed to update item. Please try again.", "error")
        return result
