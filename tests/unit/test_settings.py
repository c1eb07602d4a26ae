# =============================================================================
# tests/unit/test_settings.py
# Unit Tests for settings resolution
# =============================================================================

import pytest

from crisis_core.config import AppSettings, load_settings
from crisis_core.errors import ConfigurationError
from crisis_core.models import StatusType
from crisis_core.simulation import DEFAULT_RULES


class TestLoadSettings:

    def test_defaults_without_secrets_or_env(self):
        settings = load_settings(secrets={}, env={})
        assert settings == AppSettings()
        assert settings.simulation.rules == DEFAULT_RULES
        assert not settings.ai.configured

    def test_secrets_sections_applied(self):
        settings = load_settings(
            secrets={
                "ai": {"api_key": "sk-secret", "model": "gpt-4o"},
                "hazards": {"weather_provider": "nws", "radius_km": "250"},
                "map": {"style": "carto-darkmatter"},
            },
            env={},
        )
        assert settings.ai.api_key == "sk-secret"
        assert settings.ai.model == "gpt-4o"
        assert settings.hazards.weather_provider == "nws"
        assert settings.hazards.radius_km == 250.0
        assert settings.map.style == "carto-darkmatter"

    def test_env_wins_over_secrets(self):
        settings = load_settings(
            secrets={"ai": {"api_key": "sk-secret"}, "simulation": {"interval_seconds": 10}},
            env={"OPENAI_API_KEY": "sk-env", "CRISIS_HUB_SIMULATION_INTERVAL": "2.5"},
        )
        assert settings.ai.api_key == "sk-env"
        assert settings.simulation.interval_seconds == 2.5

    @pytest.mark.parametrize("raw, expected", [("true", True), ("0", False), ("off", False), ("YES", True)])
    def test_boolean_env_values(self, raw, expected):
        settings = load_settings(secrets={}, env={"CRISIS_HUB_SIMULATION_ENABLED": raw})
        assert settings.simulation.enabled is expected

    def test_seed_and_log_level(self):
        settings = load_settings(secrets={}, env={"CRISIS_HUB_SIMULATION_SEED": "42", "CRISIS_HUB_LOG_LEVEL": "debug"})
        assert settings.simulation.seed == 42
        assert settings.log_level == "DEBUG"

    def test_custom_simulation_rules(self):
        settings = load_settings(
            secrets={
                "simulation": {
                    "rules": [
                        {"name_contains": "Lee", "target_status": "HELP", "message": "Stuck", "probability": 0.5}
                    ]
                }
            },
            env={},
        )
        (rule,) = settings.simulation.rules
        assert rule.name_contains == "Lee"
        assert rule.target_status is StatusType.HELP
        assert rule.probability == 0.5

    def test_storage_paths(self):
        settings = load_settings(secrets={}, env={"CRISIS_HUB_DATA_DIR": "/tmp/hub"})
        assert str(settings.storage.state_dir) == "/tmp/hub/state"
        assert str(settings.storage.voice_notes_dir) == "/tmp/hub/voice_notes"


class TestInvalidSettings:

    @pytest.mark.parametrize("secrets", [
        {"hazards": {"weather_provider": "radar"}},
        {"location": {"provider": "gps"}},
        {"simulation": {"interval_seconds": 0}},
        {"simulation": {"interval_seconds": "often"}},
        {"simulation": {"rules": [{"name_contains": "Mike", "target_status": "LOST", "message": "x"}]}},
        {"simulation": {"rules": [{"name_contains": "Mike", "target_status": "SAFE", "message": "x", "probability": 2}]}},
    ])
    def test_rejected(self, secrets):
        with pytest.raises(ConfigurationError):
            load_settings(secrets=secrets, env={})

    def test_error_names_the_key(self):
        with pytest.raises(ConfigurationError) as exc:
            load_settings(secrets={"location": {"provider": "gps"}}, env={})
        assert exc.value.details["config_key"] == "location.provider"


class TestSecretsFromStreamlit:

    def test_reads_streamlit_secrets(self, mock_streamlit):
        mock_streamlit.secrets = {"ai": {"api_key": "sk-from-st"}}
        assert load_settings(env={}).ai.api_key == "sk-from-st"

    def test_missing_secrets_file_is_tolerated(self, mock_streamlit):
        mock_streamlit.secrets = None
        assert load_settings(env={}) == AppSettings()
