"""
Clocks - Injectable time sources.

All engine timing is in milliseconds. Production code uses the real
clocks; tests inject ManualClock to step time deterministically.
"""

from __future__ import annotations
from typing import Protocol
import time


class Clock(Protocol):
    """Anything that can report the current time in milliseconds."""

    def now(self) -> float:
        ...


class MonotonicClock:
    """Monotonic milliseconds, for measuring elapsed time between frames."""

    def now(self) -> float:
        return time.monotonic() * 1000.0


class WallClock:
    """Epoch milliseconds, for timestamps on players, actions and cooldowns."""

    def now(self) -> float:
        return time.time() * 1000.0


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        """Move time forward and return the new reading."""
        self._now += ms
        return self._now

    def set(self, ms: float):
        self._now = float(ms)
