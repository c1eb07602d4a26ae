# =============================================================================
# crisis_core/simulation/rules.py
# Status-transition rules for the live crisis simulation
# =============================================================================
"""
Configurable rules that advance member statuses on each simulation tick.

A rule matches the first member whose name contains ``name_contains`` and,
with ``probability``, moves it to ``target_status``. ``from_statuses`` limits
which current statuses the rule may leave; ``None`` means any status other
than the target. Rules never touch members that no rule names.
"""

from __future__ import annotations
import random
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from crisis_core.models.circle import FamilyCircle, Member, StatusType, next_update_time


@dataclass(frozen=True)
class SimulationRule:
    name_contains: str
    target_status: StatusType
    message: str
    probability: float = 1.0
    from_statuses: Optional[Tuple[StatusType, ...]] = None
    improve_accuracy_to: Optional[float] = None

    def matches(self, member: Member) -> bool:
        return self.name_contains in member.name

    def can_transition(self, member: Member) -> bool:
        if member.status == self.target_status:
            return False
        if self.from_statuses is None:
            return True
        return member.status in self.from_statuses

    def transition(self, member: Member, now: datetime) -> Member:
        location = member.location
        if location is not None and self.improve_accuracy_to is not None:
            current = location.accuracy
            if current is None or current > self.improve_accuracy_to:
                location = replace(location, accuracy=self.improve_accuracy_to)
        return replace(
            member,
            status=self.target_status,
            message=self.message,
            location=location,
            last_update=next_update_time(member, now),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SimulationRule:
        from_statuses = data.get("from_statuses")
        accuracy = data.get("improve_accuracy_to")
        return cls(
            name_contains=data["name_contains"],
            target_status=StatusType(data["target_status"]),
            message=data["message"],
            probability=float(data.get("probability", 1.0)),
            from_statuses=tuple(StatusType(s) for s in from_statuses) if from_statuses else None,
            improve_accuracy_to=float(accuracy) if accuracy is not None else None,
        )


DEFAULT_RULES: Tuple[SimulationRule, ...] = (
    SimulationRule(
        name_contains="Mike",
        target_status=StatusType.SAFE,
        message="I'm okay, at home. Shaken up but safe.",
        probability=1.0,
        from_statuses=(StatusType.UNKNOWN,),
        improve_accuracy_to=15.0,
    ),
    SimulationRule(
        name_contains="Emma",
        target_status=StatusType.HELP,
        message="Stuck near the office, roads are blocked. Can anyone see a clear path?",
        probability=0.3,
    ),
    SimulationRule(
        name_contains="Grandma",
        target_status=StatusType.INJURED,
        message="Neighbor called. Said she fell and hurt her arm. Needs assistance.",
        probability=0.15,
    ),
)


def apply_rules(
    circle: FamilyCircle,
    rules: Sequence[SimulationRule],
    rng: random.Random,
    now: datetime,
) -> Tuple[FamilyCircle, Iterable[str]]:
    """
    Run one simulation tick over ``circle``.

    Returns the new circle and the ids of members that changed. The random
    source is only drawn for rules whose transition is possible, so a seeded
    ``rng`` gives reproducible runs.
    """
    members = list(circle.members)
    changed = []

    for rule in rules:
        index = next((i for i, m in enumerate(members) if rule.matches(m)), None)
        if index is None:
            continue
        member = members[index]
        if not rule.can_transition(member):
            continue
        if rule.probability < 1.0 and rng.random() >= rule.probability:
            continue
        members[index] = rule.transition(member, now)
        changed.append(member.id)

    if not changed:
        return circle, []
    return replace(circle, members=tuple(members)), changed
