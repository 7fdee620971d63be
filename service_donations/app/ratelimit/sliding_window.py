"""
Sliding-window rate limiter for the donation endpoints.
"""

from collections import deque
from typing import Any, Deque, Dict, Optional

from shared.logging import get_logger

from ..clock import Clock


class SlidingWindowRateLimiter:
    """In-process sliding-window limiter keyed by caller identity.

    Per key, an ordered deque of accepted request timestamps is kept. A
    request is accepted while fewer than ``max_requests`` timestamps fall
    inside the trailing ``window_ms``; rejected requests are not recorded.
    """

    def __init__(self, name: str, window_ms: int, max_requests: int, clock: Optional[Clock] = None):
        self.name = name
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.clock = clock or Clock()
        self.logger = get_logger(f"donations.rate_limiter.{name}")
        self._hits: Dict[str, Deque[float]] = {}
        self.rejected = 0

    def _prune(self, hits: Deque[float], now: float) -> None:
        cutoff = now - self.window_ms
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def allow(self, key: str) -> bool:
        """Record and accept a request for ``key`` unless the window is full."""
        now = self.clock.now_ms()
        hits = self._hits.setdefault(key, deque())
        self._prune(hits, now)

        if len(hits) >= self.max_requests:
            self.rejected += 1
            self.logger.warning(
                "Rate limit exceeded",
                key=key,
                current_count=len(hits),
                limit=self.max_requests,
                window_ms=self.window_ms
            )
            return False

        hits.append(now)
        return True

    def current_count(self, key: str) -> int:
        """Requests for ``key`` still inside the window."""
        hits = self._hits.get(key)
        if not hits:
            return 0
        self._prune(hits, self.clock.now_ms())
        return len(hits)

    def evict_stale(self) -> int:
        """Drop keys with no request inside the window."""
        now = self.clock.now_ms()
        stale = []
        for key, hits in self._hits.items():
            self._prune(hits, now)
            if not hits:
                stale.append(key)

        for key in stale:
            del self._hits[key]

        if stale:
            self.logger.debug("Evicted idle rate limit keys", evicted=len(stale))
        return len(stale)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
            "tracked_keys": len(self._hits),
            "rejected": self.rejected,
        }
