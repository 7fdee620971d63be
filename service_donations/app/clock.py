"""
Millisecond wall clock shared by the queue, limiters and dedupe tables.
"""

import time


class Clock:
    """Epoch-millisecond clock."""

    def now_ms(self) -> float:
        return time.time() * 1000


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and replay tooling."""

    def __init__(self, start_ms: float = 1_700_000_000_000):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        self._now += ms
        return self._now
