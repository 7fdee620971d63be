"""
Rate limiting package for the donation endpoints.

Holds the sliding-window limiter used per webhook source and per polling
game.
"""

from .sliding_window import SlidingWindowRateLimiter

__all__ = ["SlidingWindowRateLimiter"]
