# checkout/services/rate_limit.py
"""Admission control for coupon lookups.

``InMemoryRateLimiter`` keeps its counters in this process only. With more
than one worker or instance each keeps its own window, so it is a
best-effort throttle against code guessing, never a correctness guarantee.
Deployments that need a shared limit pass their own object with the same
``allow(key)`` method to ``create_app(rate_limiter=...)``.
"""
import threading
import time
from typing import Protocol


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool: ...


class InMemoryRateLimiter:
    """Fixed-window counter per key."""

    def __init__(self, max_hits=10, window_seconds=60, clock=time.monotonic):
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                self._windows[key] = (1, now + self.window_seconds)
                self._prune(now)
                return True
            if count >= self.max_hits:
                return False
            self._windows[key] = (count + 1, reset_at)
            return True

    def _prune(self, now):
        if len(self._windows) < 10_000:
            return
        for key in [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]:
            del self._windows[key]


class AllowAll:
    def allow(self, key: str) -> bool:
        return True
