# =============================================================================
# crisis_core/state/optimistic.py
# Apply-locally, confirm-remotely commands with inverse rollback
# =============================================================================
"""
OptimisticCommand.

    command = OptimisticCommand(
        name="Toggle 'Water Storage'",
        apply=lambda plan: plan.with_item_status("item_2", COMPLETE),
        inverse=lambda plan: plan.with_item_status("item_2", INCOMPLETE),
        confirm=lambda: service.update_item_status("item_2", COMPLETE),
    )
    result = command.execute(plan_binding)

The local state changes immediately. If ``confirm`` raises, ``inverse`` is
applied to the *current* state (not a snapshot), so unrelated changes made
meanwhile survive the rollback.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar, Union

from crisis_core.logging import get_logger
from crisis_core.services.base_service import ServiceResult

logger = get_logger(__name__)

S = TypeVar("S")


class StateSlot(Protocol[S]):
    """Anything with ``get`` and a ``set`` that accepts a transform."""

    def get(self) -> S:
        ...

    def set(self, value_or_fn: Union[S, Callable[[S], S]]) -> S:
        ...


@dataclass
class OptimisticCommand(Generic[S]):
    name: str
    apply: Callable[[S], S]
    inverse: Callable[[S], S]
    confirm: Callable[[], Any]
    on_rollback: Optional[Callable[[Exception], None]] = None

    def execute(self, slot: StateSlot[S]) -> ServiceResult:
        slot.set(self.apply)
        try:
            confirmed = self.confirm()
        except Exception as e:
            logger.warning(f"{self.name} failed, rolling back: {e}")
            slot.set(self.inverse)
            if self.on_rollback:
                self.on_rollback(e)
            return ServiceResult.from_exception(e)
        return ServiceResult.ok(confirmed)
