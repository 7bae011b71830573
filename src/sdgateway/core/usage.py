"""Advisory per-day usage counting.

The gateway depends on the :class:`UsageCounter` protocol only; the
in-memory implementation below is suitable for a single process.  Counts
are lost on restart and are not shared between instances, so they are a
soft limit and never a billing source of truth.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageKey:
    day: date
    caller_id: str


@dataclass(frozen=True)
class UsageDecision:
    """Result of one increment: whether the call may proceed and the new count."""

    allowed: bool
    count: int


class UsageCounter(Protocol):
    def increment_and_check(self, key: UsageKey, ceiling: int) -> UsageDecision: ...

    def snapshot(self) -> dict: ...


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class InMemoryUsageCounter:
    """Thread-safe ``(day, caller) -> count`` table.

    The increment and the ceiling comparison happen under one lock, so two
    concurrent calls can never both pass the last free slot.  Days older than
    ``retention_days`` are dropped whenever a new day is first written.

    Args:
        retention_days: Number of most recent days to keep.
        today: Clock used for eviction (injectable for tests).
    """

    def __init__(self, retention_days: int = 2, today: Callable[[], date] = utc_today) -> None:
        if retention_days < 1:
            raise ValueError("retention_days must be >= 1")
        self._retention_days = retention_days
        self._today = today
        self._counts: dict[date, dict[str, int]] = {}
        self._lock = threading.Lock()

    def increment_and_check(self, key: UsageKey, ceiling: int) -> UsageDecision:
        with self._lock:
            if key.day not in self._counts:
                self._counts[key.day] = {}
                self._evict_locked()
            day_counts = self._counts[key.day]
            count = day_counts.get(key.caller_id, 0) + 1
            day_counts[key.caller_id] = count
        allowed = count <= ceiling
        if not allowed:
            logger.warning(f"Daily limit exceeded for {key.caller_id}: {count} > {ceiling}")
        return UsageDecision(allowed=allowed, count=count)

    def count(self, key: UsageKey) -> int:
        with self._lock:
            return self._counts.get(key.day, {}).get(key.caller_id, 0)

    def snapshot(self) -> dict:
        """Return ``{"usage": {day: {caller: n}}, "totals": {day: n}}``."""
        with self._lock:
            usage = {day.isoformat(): dict(callers) for day, callers in sorted(self._counts.items())}
        totals = {day: sum(callers.values()) for day, callers in usage.items()}
        return {"usage": usage, "totals": totals}

    def _evict_locked(self) -> None:
        cutoff = self._today() - timedelta(days=self._retention_days - 1)
        stale = [day for day in self._counts if day < cutoff]
        for day in stale:
            del self._counts[day]
        if stale:
            logger.info(f"Evicted usage counts for {len(stale)} day(s) before {cutoff.isoformat()}")
