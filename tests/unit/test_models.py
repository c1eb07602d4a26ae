# =============================================================================
# tests/unit/test_models.py
# Unit Tests for domain models and AI contracts
# =============================================================================

from dataclasses import replace
from datetime import timedelta

import pytest
from pydantic import ValidationError

from crisis_core.models import (
    COMPLETE,
    INCOMPLETE,
    CheckinResult,
    Coordinates,
    CrisisEvent,
    FamilyCircle,
    Member,
    MultiAgentPlan,
    PreparednessItem,
    PreparednessPlan,
    StatusType,
    VoiceNote,
    events_from_dicts,
    events_to_dicts,
    next_update_time,
)
from tests.conftest import T0


class TestCoordinates:

    def test_same_point_ignores_accuracy(self):
        assert Coordinates(37.0, -122.0, 50.0).same_point(Coordinates(37.0, -122.0, 15.0))

    def test_same_point_rejects_none_and_other_points(self):
        here = Coordinates(37.0, -122.0)
        assert not here.same_point(None)
        assert not here.same_point(Coordinates(37.1, -122.0))

    def test_to_dict_omits_missing_accuracy(self):
        assert Coordinates(1.0, 2.0).to_dict() == {"lat": 1.0, "lng": 2.0}


class TestFamilyCircle:

    def test_dict_roundtrip_keeps_members_and_voice_notes(self, sample_circle):
        member = sample_circle.members[0]
        note = VoiceNote(id="vn_1", url="/tmp/vn_1.wav", created_at=T0)
        circle = replace(sample_circle, members=(replace(member, voice_notes=(note,)),) + sample_circle.members[1:])

        restored = FamilyCircle.from_dict(circle.to_dict())

        assert restored == circle

    def test_status_counts_cover_every_status(self, sample_circle):
        counts = sample_circle.status_counts()
        assert counts[StatusType.UNKNOWN] == 4
        assert set(counts) == set(StatusType)

    def test_find_member_unknown_id(self, sample_circle):
        assert sample_circle.find_member("nobody") is None


class TestNextUpdateTime:

    def test_never_moves_backwards(self):
        member = Member(id="m1", name="Mike", phone="1", last_update=T0)
        assert next_update_time(member, T0 - timedelta(minutes=5)) == T0
        assert next_update_time(member, T0 + timedelta(minutes=5)) == T0 + timedelta(minutes=5)


class TestCrisisEvent:

    def test_events_roundtrip(self, sample_events):
        assert events_from_dicts(events_to_dicts(sample_events)) == sample_events

    def test_from_dict_defaults(self):
        event = CrisisEvent.from_dict({
            "id": "x",
            "location": {"lat": 1, "lng": 2},
            "time": "2024-05-01T12:00:00+00:00",
        })
        assert event.type == "other"
        assert event.severity == "minor"
        assert event.details == {}


class TestPreparednessPlan:

    @pytest.fixture
    def plan(self):
        return PreparednessPlan(
            id="plan_1",
            name="Plan",
            items=(
                PreparednessItem("a", "Supplies", "Water", "3 days", COMPLETE),
                PreparednessItem("b", "Supplies", "Food", "3 days", INCOMPLETE),
                PreparednessItem("c", "Docs", "Copies", "Waterproof", INCOMPLETE),
            ),
        )

    def test_score_is_rounded_percentage(self, plan):
        assert plan.score == 33

    def test_empty_plan_scores_zero(self):
        assert PreparednessPlan(id="p", name="Empty").score == 0

    def test_with_item_status_returns_new_plan(self, plan):
        updated = plan.with_item_status("b", COMPLETE)
        assert updated.find_item("b").is_complete
        assert not plan.find_item("b").is_complete
        assert updated.score == 67


class TestPlanContracts:

    def test_plan_accepts_camel_case_member_name(self, plan_payload):
        plan = MultiAgentPlan.model_validate(plan_payload)
        route = plan.logistics_plan.meetup_points[0].routes[0]
        assert route.member_name == "Mike Johnson"

    def test_plan_dict_roundtrip_uses_aliases(self, plan_payload):
        plan = MultiAgentPlan.from_dict(plan_payload)
        dumped = plan.to_dict()
        assert "memberName" in dumped["logistics_plan"]["meetup_points"][0]["routes"][0]
        assert MultiAgentPlan.from_dict(dumped) == plan

    def test_ranked_meetup_points_sorted_by_rank(self, plan_payload):
        plan = MultiAgentPlan.from_dict(plan_payload)
        assert [p.rank for p in plan.logistics_plan.ranked_meetup_points()] == [1, 2]

    def test_viable_members(self, plan_payload):
        plan = MultiAgentPlan.from_dict(plan_payload)
        ranked = plan.logistics_plan.ranked_meetup_points()
        assert ranked[0].viable_members() == ["Mike Johnson"]
        assert ranked[1].viable_members() == []

    def test_urgency_outside_enum_rejected(self, plan_payload):
        plan_payload["synthesized_plan"]["urgency_level"] = "PANIC"
        with pytest.raises(ValidationError):
            MultiAgentPlan.model_validate(plan_payload)

    def test_missing_section_rejected(self, plan_payload):
        del plan_payload["medical_assessment"]
        with pytest.raises(ValidationError):
            MultiAgentPlan.model_validate(plan_payload)

    def test_checkin_status_maps_to_status_type(self):
        result = CheckinResult(status="INJURED", summary="Hurt leg at the library.")
        assert result.status_type is StatusType.INJURED

    @pytest.mark.parametrize("status", ["UNKNOWN", "safe", "OK"])
    def test_checkin_rejects_other_statuses(self, status):
        with pytest.raises(ValidationError):
            CheckinResult(status=status, summary="x")

    def test_checkin_rejects_empty_summary(self):
        with pytest.raises(ValidationError):
            CheckinResult(status="SAFE", summary="")
