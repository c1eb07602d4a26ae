# =============================================================================
# crisis_core/simulation/__init__.py
# Live crisis simulation: transition rules and tick sources
# =============================================================================

from .rules import SimulationRule, DEFAULT_RULES, apply_rules
from .scheduler import (
    Scheduler,
    ScheduledHandle,
    IntervalScheduler,
    ManualScheduler,
)

__all__ = [
    "SimulationRule",
    "DEFAULT_RULES",
    "apply_rules",
    "Scheduler",
    "ScheduledHandle",
    "IntervalScheduler",
    "ManualScheduler",
]
