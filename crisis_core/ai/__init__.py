# =============================================================================
# crisis_core/ai/__init__.py
# AI crisis team: plan generation, check-in parsing, route intelligence
# =============================================================================

from .plan_orchestrator import (
    AIPlanOrchestrator,
    PLAN_FAILURE_MESSAGE,
    CHECKIN_FAILURE_MESSAGE,
    response_format,
)

__all__ = [
    "AIPlanOrchestrator",
    "PLAN_FAILURE_MESSAGE",
    "CHECKIN_FAILURE_MESSAGE",
    "response_format",
]
