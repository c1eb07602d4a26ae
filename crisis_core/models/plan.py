# =============================================================================
# crisis_core/models/plan.py
# Sealed response contracts for the AI crisis team
# =============================================================================
"""
Pydantic models describing exactly what the AI provider must return.

The models are the boundary validation: anything that does not parse into
``MultiAgentPlan`` / ``CheckinResult`` / ``RouteInfo`` is rejected as an
invalid response. Nothing here models how the plan is produced.
"""

from __future__ import annotations
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .circle import Coordinates, StatusType


UrgencyLevel = Literal["IMMEDIATE", "URGENT", "MODERATE", "LOW"]
CheckinStatus = Literal["SAFE", "HELP", "INJURED"]


class _Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PlanCoordinates(_Contract):
    lat: float
    lng: float

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


class RouteInfo(_Contract):
    duration: str = Field(..., description="Estimated travel time, e.g., '25 min drive'.")
    distance: str = Field(..., description="Estimated travel distance, e.g., '4.5 mi'.")
    traffic_level: str = Field(..., description="Qualitative traffic assessment, e.g., 'Heavy', 'Light'.")
    hazards: List[str] = Field(..., description="Specific hazards on the route, e.g., 'Bridge closure'.")
    viable: bool = Field(..., description="Whether the route is considered safe and possible to travel.")


class MemberRoute(_Contract):
    member_name: str = Field(..., alias="memberName")
    route: RouteInfo


class MeetupPoint(_Contract):
    rank: int = Field(..., description="Priority rank, 1 being the highest.")
    name: str = Field(..., description="Descriptive name, e.g., 'City Library Park'.")
    address: str = Field(..., description="Full street address of the meetup point.")
    reason: str = Field(..., description="Why this point was chosen, considering safety and access.")
    routes: List[MemberRoute] = Field(..., description="Route analysis for each family member.")
    coordinates: PlanCoordinates

    def viable_members(self) -> List[str]:
        return [r.member_name for r in self.routes if r.route.viable]


class PriorityEntry(_Contract):
    name: str
    reason: str = Field(..., description="Why this member is prioritised, e.g., 'Last status was HELP'.")


class TriageAnalysis(_Contract):
    priority_list: List[PriorityEntry]
    assessment: str


class LogisticsPlan(_Contract):
    meetup_points: List[MeetupPoint]
    movement_plan: str = Field(..., description="When and how to move; advise staying put if no route is viable.")
    supply_recommendations: List[str]

    def ranked_meetup_points(self) -> List[MeetupPoint]:
        return sorted(self.meetup_points, key=lambda p: p.rank)


class MemberAssessment(_Contract):
    name: str
    needs: str
    instructions: str


class MedicalAssessment(_Contract):
    member_assessments: List[MemberAssessment]
    overall_recommendation: str


class ForecastStep(_Contract):
    time: str = Field(..., description="Relative time, e.g., 'Next 30 Mins'.")
    prediction: str


class PredictionForecast(_Contract):
    timeline: List[ForecastStep]
    secondary_hazards: List[str]


class SynthesizedPlan(_Contract):
    urgency_level: UrgencyLevel
    priority_actions: List[str] = Field(..., description="The top 3-5 most critical actions.")
    reassurance_message: str


class MultiAgentPlan(_Contract):
    """Five-section plan produced by one 'generate' action."""
    triage_analysis: TriageAnalysis
    logistics_plan: LogisticsPlan
    medical_assessment: MedicalAssessment
    prediction_forecast: PredictionForecast
    synthesized_plan: SynthesizedPlan

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MultiAgentPlan:
        return cls.model_validate(data)


class CheckinResult(_Contract):
    status: CheckinStatus
    summary: str = Field(..., min_length=1)

    @property
    def status_type(self) -> StatusType:
        return StatusType(self.status)


# Returned by route assessment when the provider cannot be trusted
NON_VIABLE_ROUTE = RouteInfo(
    duration="Unknown",
    distance="Unknown",
    traffic_level="Severe",
    hazards=["AI analysis failed, assume route is not viable."],
    viable=False,
)
