# =============================================================================
# tests/unit/test_persistent_state.py
# Unit Tests for the persistent key-value state store
# =============================================================================

import json

import pytest

from crisis_core.errors import PersistenceError
from crisis_core.models import FamilyCircle
from crisis_core.state import (
    CIRCLE_KEY,
    THEME_KEY,
    FileKeyValueBackend,
    MemoryKeyValueBackend,
    PersistentStateStore,
)


class TestPersistentStateStore:

    def test_saved_value_wins_over_default(self, state_store):
        state_store.save(THEME_KEY, "light")
        assert state_store.load(THEME_KEY, "dark") == "light"

    def test_missing_key_returns_default(self, state_store):
        assert state_store.load("nothing", {"a": 1}) == {"a": 1}

    def test_unparseable_value_returns_default(self, memory_backend, state_store, caplog):
        memory_backend.write(THEME_KEY, "{not json")
        assert state_store.load(THEME_KEY, "dark") == "dark"
        assert "using default" in caplog.text

    def test_decoder_failure_returns_default(self, memory_backend, state_store):
        memory_backend.write(CIRCLE_KEY, json.dumps({"unexpected": True}))
        assert state_store.load(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict) is None

    def test_model_roundtrip(self, state_store, sample_circle):
        state_store.save(CIRCLE_KEY, sample_circle)
        assert state_store.load(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict) == sample_circle

    def test_save_overwrites_whole_value(self, memory_backend, state_store):
        state_store.save("prefs", {"a": 1, "b": 2})
        state_store.save("prefs", {"a": 3})
        assert json.loads(memory_backend.read("prefs")) == {"a": 3}

    def test_save_unserialisable_returns_false(self, state_store):
        assert state_store.save("bad", object()) is False

    def test_backend_write_failure_is_logged_not_raised(self, state_store, monkeypatch):
        def broken(key, text):
            raise PersistenceError("disk full", key=key)

        monkeypatch.setattr(state_store.backend, "write", broken)
        assert state_store.save(THEME_KEY, "light") is False

    def test_clear_removes_every_key(self, state_store, memory_backend):
        state_store.save("a", 1)
        state_store.save("b", 2)
        state_store.clear()
        assert list(memory_backend.keys()) == []


class TestPersistentBinding:

    def test_set_value_persists(self, state_store):
        binding = state_store.binding(THEME_KEY, "dark")
        binding.set("light")

        assert binding.get() == "light"
        assert state_store.binding(THEME_KEY, "dark").get() == "light"

    def test_set_function_transforms_current(self, state_store):
        binding = state_store.binding("count", 0)
        binding.set(lambda n: n + 1)
        binding.set(lambda n: n + 1)
        assert binding.get() == 2

    def test_reset_restores_default_and_deletes(self, state_store, memory_backend):
        binding = state_store.binding(THEME_KEY, "dark")
        binding.set("light")
        binding.reset()

        assert binding.get() == "dark"
        assert memory_backend.read(THEME_KEY) is None

    def test_decoder_applied_on_load(self, state_store, sample_circle):
        state_store.save(CIRCLE_KEY, sample_circle)
        binding = state_store.binding(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict)
        assert binding.get() == sample_circle


class TestFileKeyValueBackend:

    def test_roundtrip_through_files(self, tmp_path):
        store = PersistentStateStore(FileKeyValueBackend(tmp_path))
        store.save(THEME_KEY, "light")

        reopened = PersistentStateStore(FileKeyValueBackend(tmp_path))

        assert reopened.load(THEME_KEY, "dark") == "light"
        assert (tmp_path / "theme.json").exists()

    def test_unsafe_key_characters_are_sanitised(self, tmp_path):
        backend = FileKeyValueBackend(tmp_path)
        backend.write("../escape/key", "1")
        assert backend.read("../escape/key") == "1"
        assert all(p.parent == tmp_path for p in tmp_path.glob("*.json"))

    def test_delete_missing_key_is_noop(self, tmp_path):
        FileKeyValueBackend(tmp_path).delete("missing")

    def test_no_temp_files_left_behind(self, tmp_path):
        backend = FileKeyValueBackend(tmp_path)
        backend.write("a", "1")
        backend.write("a", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]


class TestMemoryKeyValueBackend:

    def test_initial_values(self):
        backend = MemoryKeyValueBackend({"theme": '"light"'})
        assert PersistentStateStore(backend).load("theme", "dark") == "light"
