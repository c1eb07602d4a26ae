# =============================================================================
# crisis_core/state/persistent_state.py
# Durable key/value state that survives browser reloads and restarts
# =============================================================================
"""
Persistent State Store.

Each logical slice of the dashboard (theme, circle, crisis data cache, last AI
plan, preparedness plan) is stored independently as one JSON document under a
string key. Reads never raise: a missing or corrupt entry yields the caller's
default and a warning (read-repair). Writes fully replace the previous value.

Usage:
    store = PersistentStateStore(FileKeyValueBackend(".crisis_hub/state"))
    theme = store.binding(THEME_KEY, "dark")
    theme.set("light")
    circle = store.binding(CIRCLE_KEY, None, decoder=FamilyCircle.from_dict)
"""

from __future__ import annotations
import json
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar, Union

from crisis_core.errors import PersistenceError
from crisis_core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Storage keys, one per slice
THEME_KEY = "theme"
CIRCLE_KEY = "circle"
CRISIS_CACHE_KEY = "crisis_data_cache"
AI_PLAN_KEY = "ai_plan"
PREPAREDNESS_KEY = "preparedness_plan"

STATE_KEYS = (THEME_KEY, CIRCLE_KEY, CRISIS_CACHE_KEY, AI_PLAN_KEY, PREPAREDNESS_KEY)


# =============================================================================
# BACKENDS
# =============================================================================

class KeyValueBackend(ABC):
    """Raw text storage keyed by string."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def write(self, key: str, text: str) -> None:
        """Replace the stored text. Raises PersistenceError on failure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> Iterable[str]:
        ...


class MemoryKeyValueBackend(KeyValueBackend):
    """In-process backend for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, text: str) -> None:
        self.data[key] = text

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self.data)


class FileKeyValueBackend(KeyValueBackend):
    """One ``<key>.json`` file per key, replaced atomically via temp file + rename."""

    _SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._SAFE_KEY.sub('_', key)}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Error reading state file {path}: {e}")
            return None

    def write(self, key: str, text: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Could not write state file {path}: {e}", key=key)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Could not delete state for {key}: {e}", key=key)

    def keys(self) -> Iterable[str]:
        return [p.stem for p in self.directory.glob("*.json")]


# =============================================================================
# STORE
# =============================================================================

def to_jsonable(value: Any) -> Any:
    """Convert models (anything with ``to_dict``) and containers to JSON types."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return value


class PersistentStateStore:
    """Typed load/save over a KeyValueBackend."""

    def __init__(self, backend: Optional[KeyValueBackend] = None):
        self.backend = backend or MemoryKeyValueBackend()

    def load(self, key: str, default: T, decoder: Optional[Callable[[Any], T]] = None) -> T:
        """
        Load the value stored under ``key``.

        Returns ``default`` (and logs a warning) when nothing is stored, the
        stored text is not JSON, or ``decoder`` rejects it. Never raises.
        """
        try:
            text = self.backend.read(key)
        except Exception as e:
            logger.warning(f"Error reading state key '{key}': {e}")
            return default
        if text is None:
            return default

        try:
            raw = json.loads(text)
            return decoder(raw) if decoder and raw is not None else raw
        except Exception as e:
            logger.warning(f"Error reading state key '{key}', using default: {e}")
            return default

    def save(self, key: str, value: Any) -> bool:
        """
        Serialise and overwrite ``key``. Returns False (logged) on failure.
        """
        try:
            text = json.dumps(to_jsonable(value))
        except (TypeError, ValueError) as e:
            logger.warning(f"Error serialising state key '{key}': {e}")
            return False
        try:
            self.backend.write(key, text)
        except PersistenceError as e:
            logger.warning(f"Error setting state key '{key}': {e.message}")
            return False
        return True

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except PersistenceError as e:
            logger.warning(f"Error deleting state key '{key}': {e.message}")

    def clear(self) -> None:
        for key in list(self.backend.keys()):
            self.delete(key)

    def binding(
        self,
        key: str,
        default: T,
        decoder: Optional[Callable[[Any], T]] = None,
    ) -> PersistentBinding[T]:
        return PersistentBinding(self, key, default, decoder)


class PersistentBinding(Generic[T]):
    """
    Paired read/write handle for one key.

    The value is loaded once on creation; ``set`` updates memory and storage
    together. ``set`` accepts a value or a function of the current value, the
    function form running under the binding's lock.
    """

    def __init__(
        self,
        store: PersistentStateStore,
        key: str,
        default: T,
        decoder: Optional[Callable[[Any], T]] = None,
    ):
        self.store = store
        self.key = key
        self.default = default
        self._lock = threading.RLock()
        self._value = store.load(key, default, decoder)

    def get(self) -> T:
        return self._value

    def set(self, value_or_fn: Union[T, Callable[[T], T]]) -> T:
        with self._lock:
            value = value_or_fn(self._value) if callable(value_or_fn) else value_or_fn
            self._value = value
            self.store.save(self.key, value)
            return value

    def reset(self) -> None:
        with self._lock:
            self._value = self.default
            self.store.delete(self.key)

    def __repr__(self) -> str:
        return f"PersistentBinding(key={self.key!r})"
