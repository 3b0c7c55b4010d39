from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Millisecond time source used by the scheduler."""

    def now(self) -> float: ...


class MonotonicClock:
    """Clock backed by ``time.monotonic``; never moves backward."""

    def now(self) -> float:
        return time.monotonic() * 1000.0


class WallClock:
    """Clock backed by ``time.time``.

    Wall-clock time can jump backward when the system time is adjusted. The
    scheduler treats a negative elapsed time as a reason to invoke right away,
    so this clock is safe to use, just less smooth than ``MonotonicClock``.
    """

    def now(self) -> float:
        return time.time() * 1000.0


class ManualClock:
    """Virtual clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)

    def now(self) -> float:
        return self._now

    def advance(self, delta_ms: float) -> float:
        if delta_ms < 0:
            raise ValueError("delta_ms must be >= 0, use set() to move backward")
        self._now += delta_ms
        return self._now

    def set(self, value_ms: float) -> float:
        # may go backward to simulate clock skew
        self._now = float(value_ms)
        return self._now
