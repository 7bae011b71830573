"""Tests for sdgateway.core.usage - the in-memory daily usage counter."""

from __future__ import annotations

import threading
from datetime import date

import pytest

from sdgateway.core.usage import InMemoryUsageCounter, UsageKey

DAY = date(2026, 10, 19)


class TestIncrementAndCheck:
    def test_counts_up_to_ceiling(self):
        counter = InMemoryUsageCounter(today=lambda: DAY)
        key = UsageKey(day=DAY, caller_id="alice")
        decisions = [counter.increment_and_check(key, ceiling=2) for _ in range(3)]
        assert [d.allowed for d in decisions] == [True, True, False]
        assert [d.count for d in decisions] == [1, 2, 3]

    def test_callers_are_independent(self):
        counter = InMemoryUsageCounter(today=lambda: DAY)
        counter.increment_and_check(UsageKey(DAY, "alice"), ceiling=1)
        assert counter.increment_and_check(UsageKey(DAY, "bob"), ceiling=1).allowed

    def test_days_are_independent(self):
        counter = InMemoryUsageCounter(today=lambda: date(2026, 10, 20))
        counter.increment_and_check(UsageKey(DAY, "alice"), ceiling=1)
        assert counter.increment_and_check(UsageKey(date(2026, 10, 20), "alice"), ceiling=1).allowed

    def test_invalid_retention(self):
        with pytest.raises(ValueError):
            InMemoryUsageCounter(retention_days=0)


class TestConcurrency:
    """The increment and the comparison are one atomic step."""

    def test_only_one_thread_passes_ceiling_of_one(self):
        counter = InMemoryUsageCounter(today=lambda: DAY)
        key = UsageKey(DAY, "alice")
        barrier = threading.Barrier(16)
        results: list[bool] = []
        results_lock = threading.Lock()

        def worker():
            barrier.wait()
            allowed = counter.increment_and_check(key, ceiling=1).allowed
            with results_lock:
                results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert counter.count(key) == 16


class TestSnapshotAndEviction:
    def test_snapshot_totals(self):
        counter = InMemoryUsageCounter(today=lambda: DAY)
        counter.increment_and_check(UsageKey(DAY, "alice"), ceiling=10)
        counter.increment_and_check(UsageKey(DAY, "alice"), ceiling=10)
        counter.increment_and_check(UsageKey(DAY, "bob"), ceiling=10)
        snapshot = counter.snapshot()
        assert snapshot["usage"] == {"2026-10-19": {"alice": 2, "bob": 1}}
        assert snapshot["totals"] == {"2026-10-19": 3}

    def test_old_days_are_evicted(self):
        today = {"value": date(2026, 10, 17)}
        counter = InMemoryUsageCounter(retention_days=2, today=lambda: today["value"])
        counter.increment_and_check(UsageKey(date(2026, 10, 17), "alice"), ceiling=10)

        today["value"] = DAY
        counter.increment_and_check(UsageKey(DAY, "alice"), ceiling=10)

        assert list(counter.snapshot()["usage"]) == ["2026-10-19"]
