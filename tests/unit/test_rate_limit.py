"""Tests for sdgateway.core.rate_limit - the sliding-window limiter."""

from __future__ import annotations

import pytest

from sdgateway.core.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSlidingWindow:
    def test_budget_is_enforced(self):
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())
        allowed = [limiter.hit("1.2.3.4").allowed for _ in range(4)]
        assert allowed == [True, True, True, False]

    def test_remaining_counts_down(self):
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
        assert limiter.hit("a").remaining == 1
        assert limiter.hit("a").remaining == 0

    def test_window_rolls(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        assert limiter.hit("a").allowed
        clock.now += 30
        denied = limiter.hit("a")
        assert not denied.allowed
        assert denied.reset_after == pytest.approx(30)
        clock.now += 31
        assert limiter.hit("a").allowed

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.hit("a").allowed
        assert limiter.hit("b").allowed

    def test_rejection_headers(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.hit("a")
        headers = limiter.hit("a").headers()
        assert headers["RateLimit-Limit"] == "1"
        assert headers["RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "60"

    def test_prune_drops_idle_keys(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=10, clock=clock)
        limiter.hit("a")
        clock.now += 11
        assert limiter.prune() == 1

    @pytest.mark.parametrize("max_requests, window", [(0, 60), (1, 0)])
    def test_invalid_arguments(self, max_requests, window):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=window)
