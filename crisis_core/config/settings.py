# =============================================================================
# crisis_core/config/settings.py
# Application settings from Streamlit secrets, environment and .env
# =============================================================================
"""
Settings for Family Crisis Hub.

Resolution order, later wins:
    1. dataclass defaults
    2. Streamlit secrets (``.streamlit/secrets.toml``)
    3. environment variables (``OPENAI_API_KEY``, ``CRISIS_HUB_*``), with
       ``.env`` loaded through python-dotenv

Expected secrets.toml format:

    [ai]
    api_key = "sk-..."
    model = "gpt-4o-mini"

    [hazards]
    weather_provider = "nws"        # mock | nws | none

    [simulation]
    interval_seconds = 5
    seed = 42

    [[simulation.rules]]
    name_contains = "Mike"
    target_status = "SAFE"
    message = "I'm okay, at home. Shaken up but safe."
    from_statuses = ["UNKNOWN"]
    improve_accuracy_to = 15

    [location]
    provider = "ip"                 # ip | static

    [map]
    style = "open-street-map"
    mapbox_token = ""
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import streamlit as st
from dotenv import load_dotenv

from crisis_core.errors import ConfigurationError
from crisis_core.logging import get_logger
from crisis_core.simulation.rules import DEFAULT_RULES, SimulationRule

logger = get_logger(__name__)

ENV_PREFIX = "CRISIS_HUB_"

WEATHER_PROVIDERS = ("mock", "nws", "none")
LOCATION_PROVIDERS = ("ip", "static")


# =============================================================================
# SECTIONS
# =============================================================================

@dataclass(frozen=True)
class AISettings:
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    checkin_model: str = "gpt-4o-mini"
    temperature: float = 0.4
    timeout: float = 60.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class HazardSettings:
    radius_km: float = 100.0
    min_magnitude: float = 4.0
    seismic_cache_ttl: float = 300.0
    weather_cache_ttl: float = 900.0
    weather_provider: str = "mock"
    nws_user_agent: str = "family-crisis-hub (contact@example.com)"
    request_timeout: int = 15


@dataclass(frozen=True)
class SimulationSettings:
    enabled: bool = True
    interval_seconds: float = 5.0
    seed: Optional[int] = None
    rules: Tuple[SimulationRule, ...] = DEFAULT_RULES


@dataclass(frozen=True)
class LocationSettings:
    provider: str = "ip"
    timeout: float = 10.0
    high_accuracy: bool = True
    max_age: float = 0.0
    static_lat: Optional[float] = None
    static_lng: Optional[float] = None


@dataclass(frozen=True)
class StorageSettings:
    data_dir: str = ".crisis_hub"
    state_subdir: str = "state"
    voice_notes_subdir: str = "voice_notes"

    @property
    def state_dir(self) -> Path:
        return Path(self.data_dir) / self.state_subdir

    def session_state_dir(self, session_id: Optional[str] = None) -> Path:
        """State directory of one browser session; the shared root when no id is given."""
        return self.state_dir / session_id if session_id else self.state_dir

    @property
    def voice_notes_dir(self) -> Path:
        return Path(self.data_dir) / self.voice_notes_subdir


@dataclass(frozen=True)
class MapSettings:
    style: str = "open-street-map"
    mapbox_token: Optional[str] = None
    zoom: int = 11


@dataclass(frozen=True)
class AppSettings:
    ai: AISettings = field(default_factory=AISettings)
    hazards: HazardSettings = field(default_factory=HazardSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    location: LocationSettings = field(default_factory=LocationSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    map: MapSettings = field(default_factory=MapSettings)
    notification_seconds: float = 7.0
    log_level: str = "INFO"


# =============================================================================
# LOADING
# =============================================================================

def _coerce(section: str, name: str, value: Any, default: Any) -> Any:
    """Convert a raw secret/env value to the type of the field default."""
    if value is None or value == "":
        return None if default is None else default
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if default is None and name in ("seed",):
            return int(value)
        if default is None and name.startswith("static_"):
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for {section}.{name}: {value!r}",
            config_key=f"{section}.{name}",
            expected_type=type(default).__name__ if default is not None else "number",
        )
    return value


def _apply(section_obj: Any, section: str, values: Mapping[str, Any]) -> Any:
    updates = {}
    for f in fields(section_obj):
        if f.name not in values or f.name == "rules":
            continue
        updates[f.name] = _coerce(section, f.name, values[f.name], getattr(section_obj, f.name))
    return replace(section_obj, **updates) if updates else section_obj


def _read_secrets() -> Dict[str, Any]:
    """Streamlit secrets as plain dicts; empty when no secrets file exists."""
    try:
        return {key: st.secrets[key] for key in st.secrets.keys()}
    except Exception as e:
        logger.debug(f"No Streamlit secrets available: {e}")
        return {}


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
    mapping = {
        "OPENAI_API_KEY": ("ai", "api_key"),
        f"{ENV_PREFIX}AI_MODEL": ("ai", "model"),
        f"{ENV_PREFIX}CHECKIN_MODEL": ("ai", "checkin_model"),
        f"{ENV_PREFIX}WEATHER_PROVIDER": ("hazards", "weather_provider"),
        f"{ENV_PREFIX}SIMULATION_ENABLED": ("simulation", "enabled"),
        f"{ENV_PREFIX}SIMULATION_INTERVAL": ("simulation", "interval_seconds"),
        f"{ENV_PREFIX}SIMULATION_SEED": ("simulation", "seed"),
        f"{ENV_PREFIX}LOCATION_PROVIDER": ("location", "provider"),
        f"{ENV_PREFIX}LOCATION_TIMEOUT": ("location", "timeout"),
        f"{ENV_PREFIX}DATA_DIR": ("storage", "data_dir"),
        f"{ENV_PREFIX}MAP_STYLE": ("map", "style"),
        f"{ENV_PREFIX}MAPBOX_TOKEN": ("map", "mapbox_token"),
    }
    overrides: Dict[str, Dict[str, Any]] = {}
    for var, (section, name) in mapping.items():
        if env.get(var):
            overrides.setdefault(section, {})[name] = env[var]
    return overrides


def _validate(settings: AppSettings) -> AppSettings:
    if settings.hazards.weather_provider not in WEATHER_PROVIDERS:
        raise ConfigurationError(
            f"Unknown weather provider: {settings.hazards.weather_provider}",
            config_key="hazards.weather_provider",
        )
    if settings.location.provider not in LOCATION_PROVIDERS:
        raise ConfigurationError(
            f"Unknown location provider: {settings.location.provider}",
            config_key="location.provider",
        )
    if settings.simulation.interval_seconds <= 0:
        raise ConfigurationError(
            "Simulation interval must be positive",
            config_key="simulation.interval_seconds",
        )
    for rule in settings.simulation.rules:
        if not 0.0 <= rule.probability <= 1.0:
            raise ConfigurationError(
                f"Simulation rule probability out of range: {rule.probability}",
                config_key="simulation.rules",
            )
    return settings


def load_settings(
    secrets: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """
    Build AppSettings from secrets and environment.

    Args:
        secrets: Secrets mapping; defaults to ``st.secrets``
        env: Environment mapping; defaults to ``os.environ`` after ``load_dotenv()``

    Raises:
        ConfigurationError: a value cannot be converted or is out of range
    """
    if env is None:
        load_dotenv()
        env = os.environ
    if secrets is None:
        secrets = _read_secrets()

    layers = [secrets, _env_overrides(env)]
    settings = AppSettings()

    for layer in layers:
        for section in ("ai", "hazards", "simulation", "location", "storage", "map"):
            values = layer.get(section)
            if not values:
                continue
            values = dict(values)
            updated = _apply(getattr(settings, section), section, values)
            if section == "simulation" and values.get("rules"):
                try:
                    rules = tuple(SimulationRule.from_dict(dict(r)) for r in values["rules"])
                except (KeyError, ValueError) as e:
                    raise ConfigurationError(f"Invalid simulation rule: {e}", config_key="simulation.rules")
                updated = replace(updated, rules=rules)
            settings = replace(settings, **{section: updated})

        if "notification_seconds" in layer:
            settings = replace(settings, notification_seconds=float(layer["notification_seconds"]))

    if env.get(f"{ENV_PREFIX}LOG_LEVEL"):
        settings = replace(settings, log_level=env[f"{ENV_PREFIX}LOG_LEVEL"].upper())

    return _validate(settings)
