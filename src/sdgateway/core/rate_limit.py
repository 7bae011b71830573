"""Sliding-window request limiter keyed by client address.

This is a blunt denial-of-service guard in front of every ``/api/`` call,
independent of the caller's plan.  State lives in process memory.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

# Idle keys are swept once every this many hits.
_PRUNE_EVERY = 1024


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> dict[str, str]:
        """Standard ``RateLimit-*`` headers, plus ``Retry-After`` when rejected."""
        reset = str(max(1, math.ceil(self.reset_after)))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset,
        }
        if not self.allowed:
            headers["Retry-After"] = reset
        return headers


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` for each key.

    Args:
        max_requests: Budget per window.
        window_seconds: Length of the rolling window.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._calls = 0
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """Record one request for ``key`` unless the budget is spent."""
        now = self._clock()
        horizon = now - self.window_seconds
        with self._lock:
            self._calls += 1
            if self._calls % _PRUNE_EVERY == 0:
                self._prune_locked(horizon)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= horizon:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_after=hits[0] + self.window_seconds - now,
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(hits),
                reset_after=hits[0] + self.window_seconds - now,
            )

    def prune(self) -> int:
        """Drop keys with no hits inside the window; return how many were dropped."""
        horizon = self._clock() - self.window_seconds
        with self._lock:
            return self._prune_locked(horizon)

    def _prune_locked(self, horizon: float) -> int:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= horizon]
        for key in idle:
            del self._hits[key]
        return len(idle)
