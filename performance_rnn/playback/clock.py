"""
Clocks for the playback loop.

Performance time is expressed in seconds on a Clock. Live playback uses the
monotonic wall clock; offline rendering and tests drive a ManualClock.
"""

import threading
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of the current time in seconds."""

    @abstractmethod
    def now(self) -> float:
        raise NotImplementedError


class MonotonicClock(Clock):
    """Wall clock starting at zero when created."""

    def __init__(self):
        self._origin = time.monotonic()

    def now(self) -> float:
        return time.monotonic() - self._origin


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._time = float(start)
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._time

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError(f"Cannot move a clock backwards ({seconds}s)")
        with self._lock:
            self._time += seconds
            return self._time

    def set(self, seconds: float):
        with self._lock:
            self._time = float(seconds)


__all__ = [
    'Clock',
    'MonotonicClock',
    'ManualClock'
]
