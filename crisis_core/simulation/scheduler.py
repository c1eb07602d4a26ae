# =============================================================================
# crisis_core/simulation/scheduler.py
# Tick sources for the live crisis simulation
# =============================================================================
"""
Schedulers decide *when* the simulation ticks.

- ``IntervalScheduler``: production; a daemon thread waiting on a
  ``threading.Event`` between ticks, the same loop shape as the connection
  monitor.
- ``ManualScheduler``: tests; ticks only when ``tick()`` is called.

Both return a ``ScheduledHandle`` whose ``cancel()`` is idempotent and
releases the underlying resource.
"""

from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from crisis_core.logging import get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], None]


class ScheduledHandle(ABC):

    @abstractmethod
    def cancel(self) -> None:
        """Stop future ticks. Safe to call more than once."""

    @property
    @abstractmethod
    def active(self) -> bool:
        ...


class Scheduler(ABC):

    @abstractmethod
    def start(self, tick: TickCallback) -> ScheduledHandle:
        """Begin calling ``tick`` until the returned handle is cancelled."""


# =============================================================================
# PRODUCTION SCHEDULER
# =============================================================================

class _ThreadHandle(ScheduledHandle):

    def __init__(self, interval: float, tick: TickCallback, name: str):
        self._interval = interval
        self._tick = tick
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=name)

    def start(self) -> None:
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self._interval):
            try:
                self._tick()
            except Exception as e:
                logger.error(f"Error in simulation tick: {e}", exc_info=True)

    @property
    def active(self) -> bool:
        return not self._stop.is_set()

    def cancel(self) -> None:
        self._stop.set()
        # A tick may cancel its own subscription; never join the current thread
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=self._interval + 1)


class IntervalScheduler(Scheduler):
    """Calls the tick every ``interval_seconds`` on a daemon thread."""

    def __init__(self, interval_seconds: float = 5.0, name: str = "CrisisSimulation"):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.name = name

    def start(self, tick: TickCallback) -> ScheduledHandle:
        handle = _ThreadHandle(self.interval_seconds, tick, self.name)
        handle.start()
        logger.debug(f"Simulation scheduler started ({self.interval_seconds}s interval)")
        return handle


# =============================================================================
# TEST SCHEDULER
# =============================================================================

class _ManualHandle(ScheduledHandle):

    def __init__(self, owner: ManualScheduler, tick: TickCallback):
        self._owner = owner
        self.tick = tick
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._owner._release(self)


class ManualScheduler(Scheduler):
    """
    Deterministic tick source.

    Usage:
        scheduler = ManualScheduler()
        stop = store.subscribe_to_simulation(on_push, scheduler=scheduler)
        scheduler.tick()          # one simulation step
        stop()
        assert scheduler.active_count == 0
    """

    def __init__(self):
        self._handles: List[_ManualHandle] = []

    def start(self, tick: TickCallback) -> ScheduledHandle:
        handle = _ManualHandle(self, tick)
        self._handles.append(handle)
        return handle

    def _release(self, handle: _ManualHandle) -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def tick(self, times: int = 1) -> None:
        for _ in range(times):
            for handle in list(self._handles):
                if handle.active:
                    handle.tick()

