# =============================================================================
# crisis_core/services/preparedness_service.py
# Household preparedness checklist backend
# =============================================================================

from __future__ import annotations
import threading
from typing import Optional

from crisis_core.errors import NotFoundError
from crisis_core.models import COMPLETE, INCOMPLETE, PreparednessItem, PreparednessPlan

from .base_service import BaseService


def default_preparedness_plan() -> PreparednessPlan:
    return PreparednessPlan(
        id="plan_1",
        name="Family Earthquake Preparedness Plan",
        items=(
            PreparednessItem(
                id="item_1",
                category="Supplies",
                name="72-Hour Emergency Kit",
                status=INCOMPLETE,
                description="A kit with water, non-perishable food, flashlight, radio, first-aid supplies, and medications for at least 3 days.",
            ),
            PreparednessItem(
                id="item_2",
                category="Supplies",
                name="Water Storage",
                status=INCOMPLETE,
                description="Store at least one gallon of water per person, per day for three days.",
            ),
            PreparednessItem(
                id="item_3",
                category="Home Safety",
                name="Secure Heavy Furniture",
                status=COMPLETE,
                description="Anchor bookcases, entertainment centers, and other tall furniture to wall studs.",
            ),
            PreparednessItem(
                id="item_4",
                category="Communication",
                name="Out-of-State Contact",
                status=COMPLETE,
                description="Designate a relative or friend outside the area as a central contact point for all family members to check in with.",
            ),
            PreparednessItem(
                id="item_5",
                category="Drills",
                name="Drop, Cover, and Hold On Drill",
                status=INCOMPLETE,
                description="Practice this drill with all family members at least twice a year.",
            ),
            PreparednessItem(
                id="item_6",
                category="Documents",
                name="Emergency Document Copies",
                status=INCOMPLETE,
                description="Keep digital and physical copies of important documents (ID, insurance, bank records) in a waterproof container.",
            ),
        ),
    )


class PreparednessService(BaseService):
    """
    Backend of record for the preparedness checklist.

    The dashboard shows its own copy of the plan and toggles items
    optimistically; ``update_item_status`` is the confirmation call.
    """

    def __init__(self, plan: Optional[PreparednessPlan] = None):
        super().__init__()
        self._plan = plan or default_preparedness_plan()
        self._lock = threading.Lock()

    def get_plan(self) -> PreparednessPlan:
        return self._plan

    def update_item_status(self, item_id: str, status: str) -> PreparednessItem:
        """
        Set one item's status.

        Raises:
            NotFoundError: ``item_id`` is not in the plan
            ValueError: ``status`` is not complete/incomplete
        """
        if status not in (COMPLETE, INCOMPLETE):
            raise ValueError(f"Invalid preparedness status: {status}")
        with self._lock:
            if self._plan.find_item(item_id) is None:
                raise NotFoundError("Item not found", entity="preparedness_item", entity_id=item_id)
            self._plan = self._plan.with_item_status(item_id, status)
            return self._plan.find_item(item_id)
