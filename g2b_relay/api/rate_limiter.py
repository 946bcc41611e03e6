"""In-memory sliding window rate limiter for the relay endpoints."""

from __future__ import annotations

import time


class SlidingWindowRateLimiter:
    """Sliding window rate limiter keyed by client address.

    Keys whose newest hit has left the window are dropped, at most once
    per window, so the map only holds recently active clients.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 900,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._hits: dict[str, list[float]] = {}
        self._last_sweep = time.time()

    def check(self, key: str) -> bool:
        """Return True and count the request if ``key`` is within its limit."""
        now = time.time()
        cutoff = now - self._window_seconds
        if now - self._last_sweep >= self._window_seconds:
            self._drop_idle(cutoff)
            self._last_sweep = now

        recent = [t for t in self._hits.get(key, []) if t > cutoff]
        if len(recent) >= self._max_requests:
            self._hits[key] = recent
            return False

        recent.append(now)
        self._hits[key] = recent
        return True

    def _drop_idle(self, cutoff: float) -> None:
        idle = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in idle:
            del self._hits[k]

    def reset(self) -> None:
        self._hits.clear()
