# =============================================================================
# crisis_core/services/circle_service.py
# Authoritative family circle aggregate and its live simulation feed
# =============================================================================
"""
CircleStore - the single owner of the family circle.

Lifecycle: absent -> ``create`` (or ``restore``) -> updates -> ``clear``.

Every mutation is "read the latest circle, apply a pure transformation,
replace" under one lock, so user edits, check-in results and simulation
ticks never overwrite each other.

Usage:
    store = CircleStore()
    circle = store.create("The Johnsons", [{"name": "Mike Johnson", "phone": "+1..."}])
    store.update_member_status(member_id, StatusType.SAFE, "Home")
    stop = store.subscribe_to_simulation(on_push)
    ...
    stop()
"""

from __future__ import annotations
import random
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from crisis_core.errors import NotFoundError
from crisis_core.logging import get_logger
from crisis_core.models import (
    Coordinates,
    FamilyCircle,
    Member,
    StatusType,
    VoiceNote,
    next_update_time,
    utc_now,
)
from crisis_core.simulation import DEFAULT_RULES, Scheduler, SimulationRule, apply_rules
from crisis_core.simulation.scheduler import IntervalScheduler, ScheduledHandle

logger = get_logger(__name__)

VOICE_NOTE_MESSAGE = "Sent a voice note."
DEFAULT_MEMBER_MESSAGE = "Haven't heard anything yet."

# Demo starting positions, assigned by member position
SEED_PROFILES: Tuple[Dict[str, Any], ...] = (
    {"location": Coordinates(37.79, -122.41, 50.0), "message": DEFAULT_MEMBER_MESSAGE},   # Coit Tower
    {"location": Coordinates(37.77, -122.45, 150.0), "message": DEFAULT_MEMBER_MESSAGE},  # Golden Gate Park
    {"location": Coordinates(37.75, -122.42, 25.0), "message": DEFAULT_MEMBER_MESSAGE},   # Mission District
    {"location": Coordinates(37.80, -122.43, 500.0), "message": DEFAULT_MEMBER_MESSAGE},  # Marina
)

DEFAULT_MEMBER_SEEDS: Tuple[Dict[str, str], ...] = (
    {"name": "Mike Johnson", "phone": "+14155551235"},
    {"name": "Emma Johnson", "phone": "+15555551236"},
    {"name": "Grandma May", "phone": "+14155551237"},
    {"name": "You", "phone": "+14155551234"},
)
DEFAULT_CIRCLE_NAME = "The Johnsons"

UPDATABLE_FIELDS = frozenset({"status", "message", "is_location_shared", "location", "voice_notes"})

Transform = Callable[[FamilyCircle], FamilyCircle]


def validate_circle_form(name: str, member_seeds: Sequence[Dict[str, str]]) -> Optional[str]:
    """Return an error message for an incomplete setup form, else None."""
    if not name.strip() or not member_seeds:
        return "Please fill in all fields for the circle and its members."
    for seed in member_seeds:
        if not (seed.get("name") or "").strip() or not (seed.get("phone") or "").strip():
            return "Please fill in all fields for the circle and its members."
    return None


def _default_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class CircleStore:
    """
    In-memory circle aggregate with field-level updates.

    Args:
        clock: returns "now" as an aware datetime
        id_factory: ``id_factory(prefix)`` -> unique id
        seed_profiles: starting location/message per member position
        rules: simulation rules used by ``subscribe_to_simulation``
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[str], str]] = None,
        seed_profiles: Optional[Sequence[Dict[str, Any]]] = None,
        rules: Sequence[SimulationRule] = DEFAULT_RULES,
        scheduler: Optional[Scheduler] = None,
    ):
        self.clock = clock or utc_now
        self.id_factory = id_factory or _default_id
        self.seed_profiles = tuple(SEED_PROFILES if seed_profiles is None else seed_profiles)
        self.rules = tuple(rules)
        self.scheduler = scheduler
        self._circle: Optional[FamilyCircle] = None
        self._lock = threading.RLock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def get(self) -> Optional[FamilyCircle]:
        return self._circle

    def create(self, name: str, member_seeds: Iterable[Dict[str, str]]) -> FamilyCircle:
        now = self.clock()
        members = []
        for index, seed in enumerate(member_seeds):
            profile = self._profile_for(index)
            members.append(
                Member(
                    id=self.id_factory("member"),
                    name=seed["name"].strip(),
                    phone=seed["phone"].strip(),
                    status=StatusType.UNKNOWN,
                    is_location_shared=True,
                    message=profile.get("message"),
                    location=profile.get("location"),
                    voice_notes=(),
                    last_update=now,
                )
            )
        circle = FamilyCircle(id=self.id_factory("circle"), name=name.strip(), members=tuple(members))
        with self._lock:
            self._circle = circle
        logger.info(f"Created family circle '{circle.name}' with {len(members)} members")
        return circle

    def _profile_for(self, index: int) -> Dict[str, Any]:
        if not self.seed_profiles:
            return {}
        if index < len(self.seed_profiles):
            return self.seed_profiles[index]
        return self.seed_profiles[0]

    def restore(self, circle: FamilyCircle) -> FamilyCircle:
        with self._lock:
            self._circle = circle
        return circle

    def clear(self) -> None:
        with self._lock:
            self._circle = None
        logger.info("Family circle cleared")

    # =========================================================================
    # UPDATES
    # =========================================================================

    def apply(self, transform: Transform) -> FamilyCircle:
        """Replace the circle with ``transform(latest circle)``."""
        with self._lock:
            if self._circle is None:
                raise NotFoundError("No family circle exists", entity="circle")
            self._circle = transform(self._circle)
            return self._circle

    def update_member_fields(self, member_id: str, **fields) -> Member:
        """
        Apply only the given fields to one member and stamp ``last_update``.

        Raises:
            NotFoundError: no circle, or the member id does not resolve
            ValueError: a field name is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update member fields: {sorted(unknown)}")

        updated: List[Member] = []

        def transform(circle: FamilyCircle) -> FamilyCircle:
            member = circle.find_member(member_id)
            if member is None:
                raise NotFoundError(f"Member {member_id} not found", entity="member", entity_id=member_id)
            new_member = replace(member, last_update=next_update_time(member, self.clock()), **fields)
            updated.append(new_member)
            return replace(
                circle,
                members=tuple(new_member if m.id == member_id else m for m in circle.members),
            )

        self.apply(transform)
        return updated[0]

    def update_member_status(
        self,
        member_id: str,
        status: StatusType,
        message: Optional[str] = None,
    ) -> Member:
        fields: Dict[str, Any] = {"status": status}
        if message is not None:
            fields["message"] = message
        return self.update_member_fields(member_id, **fields)

    def set_location_sharing(self, member_id: str, is_shared: bool) -> Member:
        return self.update_member_fields(member_id, is_location_shared=is_shared)

    def add_voice_note(self, member_id: str, url: str, note_id: Optional[str] = None) -> Member:
        with self._lock:
            member = self._require_member(member_id)
            note = VoiceNote(id=note_id or self.id_factory("vn"), url=url, created_at=self.clock())
            return self.update_member_fields(
                member_id,
                voice_notes=member.voice_notes + (note,),
                message=VOICE_NOTE_MESSAGE,
            )

    def delete_voice_note(self, member_id: str, note_id: str) -> Member:
        with self._lock:
            member = self._require_member(member_id)
            remaining = tuple(n for n in member.voice_notes if n.id != note_id)
            if len(remaining) == len(member.voice_notes):
                raise NotFoundError(f"Voice note {note_id} not found", entity="voice_note", entity_id=note_id)
            return self.update_member_fields(member_id, voice_notes=remaining)

    def _require_member(self, member_id: str) -> Member:
        circle = self._circle
        if circle is None:
            raise NotFoundError("No family circle exists", entity="circle")
        member = circle.find_member(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found", entity="member", entity_id=member_id)
        return member

    # =========================================================================
    # SIMULATION
    # =========================================================================

    def simulate_tick(self, rng: random.Random, rules: Optional[Sequence[SimulationRule]] = None) -> Optional[FamilyCircle]:
        """Advance the simulation once. Returns the latest circle, or None when absent."""
        rules = self.rules if rules is None else rules
        with self._lock:
            if self._circle is None:
                return None
            circle, changed = apply_rules(self._circle, rules, rng, self.clock())
            if changed:
                logger.debug(f"Simulation updated members: {list(changed)}")
            self._circle = circle
            return circle

    def subscribe_to_simulation(
        self,
        callback: Callable[[FamilyCircle], None],
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
    ) -> Subscription:
        """
        Start the recurring simulation; each tick pushes the latest circle to
        ``callback``. Returns the stop function.
        """
        scheduler = scheduler or self.scheduler or IntervalScheduler()
        return Subscription(self, callback, scheduler, rng or random.Random())


class Subscription:
    """
    Handle for a running simulation.

    Calling it stops the ticks. Stop is synchronous and idempotent: it waits
    for an in-flight tick to finish, and no callback runs after it returns.
    """

    def __init__(
        self,
        store: CircleStore,
        callback: Callable[[FamilyCircle], None],
        scheduler: Scheduler,
        rng: random.Random,
    ):
        self._store = store
        self._callback = callback
        self._rng = rng
        self._lock = threading.RLock()
        self._active = True
        self._handle: ScheduledHandle = scheduler.start(self._tick)

    @property
    def active(self) -> bool:
        return self._active

    def _tick(self) -> None:
        with self._lock:
            if not self._active:
                return
            circle = self._store.simulate_tick(self._rng)
            if circle is not None:
                self._callback(circle)

    def stop(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._handle.cancel()
        logger.debug("Simulation subscription stopped")

    def __call__(self) -> None:
        self.stop()


__all__ = [
    "CircleStore",
    "Subscription",
    "SEED_PROFILES",
    "DEFAULT_MEMBER_SEEDS",
    "DEFAULT_CIRCLE_NAME",
    "VOICE_NOTE_MESSAGE",
    "validate_circle_form",
]
