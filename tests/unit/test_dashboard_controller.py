# =============================================================================
# tests/unit/test_dashboard_controller.py
# Unit Tests for DashboardController
# =============================================================================

import json
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from crisis_core.api import DEFAULT_LOCATION, LocationResolver, StaticLocationProvider
from crisis_core.errors import PersistenceError
from crisis_core.models import COMPLETE, INCOMPLETE, FamilyCircle, StatusType
from crisis_core.services import DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS, VOICE_NOTE_MESSAGE
from crisis_core.state import CIRCLE_KEY, THEME_KEY
from crisis_core.state.dashboard_controller import (
    OFFLINE_BANNER,
    NotificationQueue,
    merge_members,
)
from tests.conftest import USER_LOCATION, FakeClock


def _member(circle, name_part):
    return next(m for m in circle.members if name_part in m.name)


def _messages(controller):
    return [n.message for n in controller.notifications.active()]


@pytest.fixture
def with_circle(controller):
    controller.mount()
    controller.create_circle(DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS)
    controller.notifications.clear()
    return controller


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class TestNotificationQueue:

    def test_expires_after_duration(self):
        clock = FakeClock()
        queue = NotificationQueue(clock, duration=7.0)
        queue.push("Saved", "success")

        clock.advance(6.9)
        assert len(queue) == 1
        clock.advance(0.1)
        assert len(queue) == 0

    def test_dismiss_by_id(self):
        queue = NotificationQueue(FakeClock())
        first = queue.push("one")
        queue.push("two")

        queue.dismiss(first.id)

        assert [n.message for n in queue.active()] == ["two"]

    def test_ids_are_unique(self):
        queue = NotificationQueue(FakeClock())
        assert queue.push("a").id != queue.push("b").id

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            NotificationQueue(FakeClock()).push("x", "critical")


# =============================================================================
# MERGE
# =============================================================================

class TestMergeMembers:

    def test_newer_pushed_member_wins(self, sample_circle):
        mike = sample_circle.members[0]
        newer = replace(mike, status=StatusType.SAFE, last_update=mike.last_update + timedelta(seconds=5))
        pushed = replace(sample_circle, members=(newer,) + sample_circle.members[1:])

        assert merge_members(sample_circle, pushed).members[0] == newer

    def test_older_pushed_member_ignored(self, sample_circle):
        mike = sample_circle.members[0]
        displayed_mike = replace(mike, status=StatusType.HELP, last_update=mike.last_update + timedelta(seconds=10))
        displayed = replace(sample_circle, members=(displayed_mike,) + sample_circle.members[1:])

        merged = merge_members(displayed, sample_circle)

        assert merged.members[0] == displayed_mike

    def test_other_circle_ignored(self, sample_circle):
        other = replace(sample_circle, id="circle_other")
        assert merge_members(sample_circle, other) is sample_circle


# =============================================================================
# MOUNT
# =============================================================================

class TestMount:

    def test_mount_without_circle(self, controller):
        result = controller.mount()

        assert result.success
        assert controller.circle is None
        assert controller.user_location == USER_LOCATION
        assert controller.location_warning is None
        assert controller.preparedness_plan is not None
        assert [e.id for e in controller.events] == ["us7000abcd"]
        assert not controller.simulation_running
        assert controller.loading["mount"] is False

    def test_mount_restores_persisted_circle(self, services, state_store, sample_circle):
        from crisis_core.state.dashboard_controller import DashboardController

        state_store.save(CIRCLE_KEY, sample_circle)
        controller = DashboardController(services, clock=FakeClock())
        try:
            controller.mount()

            assert controller.circle == sample_circle
            assert services.store.get() == sample_circle
            assert controller.simulation_running
        finally:
            controller.shutdown()

    def test_location_fallback_warns(self, services):
        from crisis_core.state.dashboard_controller import DashboardController

        services.resolver = LocationResolver(StaticLocationProvider(None), timeout=1.0)
        controller = DashboardController(services, clock=FakeClock())
        try:
            controller.mount()
            assert controller.user_location == DEFAULT_LOCATION
            assert controller.location_warning.startswith("Could not get your location")
            assert controller.location_warning in _messages(controller)
        finally:
            controller.shutdown()

    def test_mount_is_idempotent(self, controller, hazard_source):
        controller.mount()
        controller.mount()
        assert hazard_source.calls == 1

    def test_offline_start_uses_default_location_without_lookup(self, services, monitor):
        from crisis_core.state.dashboard_controller import DashboardController

        provider = MagicMock()
        services.resolver = LocationResolver(provider, timeout=30.0)
        monitor.set_online(False)
        controller = DashboardController(services, clock=FakeClock())
        try:
            controller.mount()

            provider.get_position.assert_not_called()
            assert controller.location.is_fallback
            assert controller.user_location == DEFAULT_LOCATION
            assert controller.location_warning in _messages(controller)
        finally:
            controller.shutdown()


class TestShutdown:

    def test_stops_simulation_and_location_worker(self, with_circle, services, monkeypatch):
        resolver_shutdown = MagicMock(wraps=services.resolver.shutdown)
        monkeypatch.setattr(services.resolver, "shutdown", resolver_shutdown)

        with_circle.shutdown()

        assert services.scheduler.active_count == 0
        assert not with_circle.simulation_running
        resolver_shutdown.assert_called_once()
        assert with_circle.closed

    def test_no_connectivity_notifications_after_shutdown(self, controller, monitor):
        controller.mount()
        controller.notifications.clear()
        controller.shutdown()

        monitor.set_online(False)

        assert _messages(controller) == []


# =============================================================================
# CIRCLE
# =============================================================================

class TestCircle:

    def test_incomplete_form(self, controller):
        result = controller.create_circle("", DEFAULT_MEMBER_SEEDS)
        assert result.error_code == "VALIDATION"
        assert controller.circle is None

    def test_create_persists_and_starts_simulation(self, controller, state_store):
        controller.mount()
        result = controller.create_circle(DEFAULT_CIRCLE_NAME, DEFAULT_MEMBER_SEEDS)

        assert result.success
        assert controller.simulation_running
        assert state_store.load(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict) == controller.circle
        assert f"Family circle '{DEFAULT_CIRCLE_NAME}' created." in _messages(controller)

    def test_simulation_push_reaches_display(self, with_circle, services, state_store):
        services.scheduler.tick()

        assert _member(with_circle.circle, "Mike").status is StatusType.SAFE
        persisted = state_store.load(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict)
        assert _member(persisted, "Mike").status is StatusType.SAFE

    def test_user_edit_survives_simulation_tick(self, with_circle, services):
        mike = _member(with_circle.circle, "Mike")
        with_circle.update_member_status(mike.id, StatusType.HELP, "Car stuck on the bridge")

        services.scheduler.tick()

        after = _member(with_circle.circle, "Mike")
        assert after.status is StatusType.HELP
        assert after.message == "Car stuck on the bridge"

    def test_toggle_location_sharing(self, with_circle):
        member = with_circle.circle.members[0]

        result = with_circle.toggle_location_sharing(member.id)

        assert result.success
        assert with_circle.circle.members[0].is_location_shared is False
        assert f"Location sharing disabled for {member.name}." in _messages(with_circle)

    def test_unknown_member_is_hard_failure(self, with_circle):
        result = with_circle.update_member_status("ghost", StatusType.SAFE)

        assert result.error_code == "CIRCLE_404"
        assert any(m.startswith("Something went wrong") for m in _messages(with_circle))

    def test_exit_stops_simulation_before_clearing(self, with_circle, services, monkeypatch):
        active_at_clear = []
        original_clear = services.store.clear

        def spy_clear():
            active_at_clear.append(services.scheduler.active_count)
            original_clear()

        monkeypatch.setattr(services.store, "clear", spy_clear)
        with_circle.set_crisis_tab("plan")

        with_circle.exit_circle()
        services.scheduler.tick()

        assert active_at_clear == [0]
        assert with_circle.circle is None
        assert with_circle.plan is None
        assert with_circle.crisis_tab == "status"
        assert with_circle.notifications.active() == []
        assert services.store.get() is None

    def test_push_dropped_once_persisted_circle_is_cleared(self, with_circle, services, state_store):
        # Another writer cleared the circle, as an exit elsewhere would
        state_store.delete(CIRCLE_KEY)

        services.scheduler.tick()

        assert _member(with_circle.circle, "Mike").status is StatusType.UNKNOWN
        assert state_store.load(CIRCLE_KEY, None) is None


# =============================================================================
# AI PLAN
# =============================================================================

class TestGeneratePlan:

    def test_requires_circle(self, controller):
        assert controller.generate_plan().error_code == "VALIDATION"

    def test_success_stores_plan(self, with_circle, state_store):
        result = with_circle.generate_plan()

        assert result.success
        assert with_circle.plan == result.data
        assert state_store.load("ai_plan", None) is not None
        assert "AI action plan ready." in _messages(with_circle)
        assert with_circle.loading["plan"] is False

    def test_single_flight(self, with_circle, fake_openai):
        with_circle.loading["plan"] = True

        result = with_circle.generate_plan()

        assert result.error_code == "BUSY"
        fake_openai.chat.completions.create.assert_not_called()

    def test_offline_sets_inline_error(self, with_circle, monitor, fake_openai):
        monitor.set_online(False)

        result = with_circle.generate_plan()

        assert result.error_code == "NET_OFFLINE"
        assert "offline" in with_circle.errors["plan"]
        fake_openai.chat.completions.create.assert_not_called()

    def test_invalid_payload_keeps_previous_plan(self, with_circle, fake_openai):
        first = with_circle.generate_plan().data
        fake_openai.responses = ["not json"]

        result = with_circle.generate_plan()

        assert result.error_code == "AI_002"
        assert with_circle.plan == first
        assert with_circle.errors["plan"]


# =============================================================================
# CHECK-INS
# =============================================================================

class TestCheckin:

    def test_requires_member_and_message(self, with_circle):
        result = with_circle.submit_checkin("", "hello")
        assert result.error == "Please select a member and enter a message."
        assert with_circle.errors["checkin"] == result.error

    def test_injury_updates_member_and_log(self, with_circle, fake_openai):
        fake_openai.responses = [json.dumps({"status": "INJURED", "summary": "Hurt leg at the library."})]
        emma = _member(with_circle.circle, "Emma")

        result = with_circle.submit_checkin(emma.id, "  I fell and hurt my leg at the library  ")

        assert result.success
        updated = _member(with_circle.circle, "Emma")
        assert updated.status is StatusType.INJURED
        assert updated.message == "Hurt leg at the library."
        entry = with_circle.checkin_log[0]
        assert entry.original_message == "I fell and hurt my leg at the library"
        assert entry.parsed_status is StatusType.INJURED
        assert f"{emma.name} checked in: Injured." in _messages(with_circle)

    def test_newest_log_entry_first(self, with_circle, fake_openai):
        mike = _member(with_circle.circle, "Mike")
        fake_openai.responses = [
            json.dumps({"status": "HELP", "summary": "Stuck."}),
            json.dumps({"status": "SAFE", "summary": "Home."}),
        ]
        with_circle.submit_checkin(mike.id, "stuck")
        with_circle.submit_checkin(mike.id, "home now")

        assert [e.parsed_summary for e in with_circle.checkin_log] == ["Home.", "Stuck."]

    def test_unparseable_reply_leaves_member(self, with_circle, fake_openai):
        fake_openai.responses = [json.dumps({"status": "MAYBE", "summary": "?"})]
        mike = _member(with_circle.circle, "Mike")

        result = with_circle.submit_checkin(mike.id, "hmm")

        assert not result
        assert with_circle.errors["checkin"]
        assert _member(with_circle.circle, "Mike").status is StatusType.UNKNOWN
        assert with_circle.checkin_log == []

    def test_unknown_member(self, with_circle, fake_openai):
        fake_openai.responses = [json.dumps({"status": "SAFE", "summary": "Fine."})]
        result = with_circle.submit_checkin("ghost", "fine")
        assert result.error_code == "CIRCLE_404"


# =============================================================================
# VOICE NOTES
# =============================================================================

class TestVoiceNotes:

    def test_record_and_delete(self, with_circle):
        member = with_circle.circle.members[0]

        result = with_circle.record_voice_note(member.id, b"RIFF....WAVE")

        assert result.success
        note = with_circle.circle.members[0].voice_notes[0]
        assert with_circle.circle.members[0].message == VOICE_NOTE_MESSAGE
        assert Path(note.url).read_bytes() == b"RIFF....WAVE"
        assert "Voice note saved successfully." in _messages(with_circle)

        with_circle.delete_voice_note(member.id, note.id)

        assert with_circle.circle.members[0].voice_notes == ()
        assert not Path(note.url).exists()

    def test_blocked_offline(self, with_circle, monitor):
        monitor.set_online(False)
        member = with_circle.circle.members[0]

        result = with_circle.record_voice_note(member.id, b"audio")

        assert result.error_code == "NET_OFFLINE"
        assert with_circle.errors["voice_note"].startswith("Voice note recording")
        assert with_circle.circle.members[0].voice_notes == ()

    def test_storage_failure(self, with_circle, services, monkeypatch):
        def broken(member_id, audio, mime_type="audio/wav"):
            raise PersistenceError("disk full", key=member_id)

        monkeypatch.setattr(services.voice_notes, "save", broken)

        result = with_circle.record_voice_note(with_circle.circle.members[0].id, b"audio")

        assert result.error_code == "STATE_001"
        assert "Failed to save voice note." in _messages(with_circle)

    def test_delete_survives_file_cleanup_failure(self, with_circle, services, monkeypatch):
        member = with_circle.circle.members[0]
        with_circle.record_voice_note(member.id, b"audio")
        note = with_circle.circle.members[0].voice_notes[0]

        def broken(url):
            raise PersistenceError("read-only filesystem", key=url)

        monkeypatch.setattr(services.voice_notes, "delete", broken)

        result = with_circle.delete_voice_note(member.id, note.id)

        assert result.success
        assert with_circle.circle.members[0].voice_notes == ()


# =============================================================================
# PREPAREDNESS
# =============================================================================

class TestPreparedness:

    def test_toggle_confirms(self, controller, services):
        controller.mount()

        result = controller.toggle_preparedness_item("item_1")

        assert result.success
        assert controller.preparedness_plan.find_item("item_1").status == COMPLETE
        assert services.preparedness.get_plan().find_item("item_1").status == COMPLETE

    def test_failed_confirm_rolls_back(self, controller, services, monkeypatch):
        controller.mount()

        def reject(item_id, status):
            raise RuntimeError("backend unavailable")

        monkeypatch.setattr(services.preparedness, "update_item_status", reject)

        result = controller.toggle_preparedness_item("item_3")

        assert not result
        assert controller.preparedness_plan.find_item("item_3").status == COMPLETE
        assert "Failed to update item. Please try again." in _messages(controller)

    def test_blocked_offline(self, controller, monitor):
        controller.mount()
        monitor.set_online(False)

        result = controller.toggle_preparedness_item("item_1")

        assert result.error_code == "NET_OFFLINE"
        assert controller.preparedness_plan.find_item("item_1").status == INCOMPLETE


# =============================================================================
# PREFERENCES / CONNECTIVITY
# =============================================================================

class TestPreferences:

    def test_theme_persisted(self, controller, state_store):
        assert controller.theme == "dark"
        assert controller.set_theme("light").success
        assert state_store.load(THEME_KEY, "dark") == "light"

    def test_unknown_theme(self, controller):
        assert controller.set_theme("neon").error_code == "VALIDATION"
        assert controller.theme == "dark"

    def test_unknown_view_and_tab(self, controller):
        with pytest.raises(ValueError):
            controller.set_view("settings")
        with pytest.raises(ValueError):
            controller.set_crisis_tab("chat")

    def test_connectivity_notifications(self, controller, monitor):
        monitor.set_online(False)
        assert controller.offline_banner == OFFLINE_BANNER
        assert OFFLINE_BANNER in _messages(controller)

        monitor.set_online(True)
        assert controller.offline_banner is None
        assert "Back online." in _messages(controller)

    def test_notifications_expire(self, controller):
        controller.notify("Hello", "info")
        controller.notification_clock.advance(7.0)
        assert _messages(controller) == []
