"""Timing and counter bookkeeping for search and decode."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Iterator, Optional

from .types import REJECT_REASONS


_TRACKER_VAR: ContextVar["MetricsTracker | None"] = ContextVar(
    "quadtag_metrics_tracker", default=None
)

REJECT_PREFIX = "search.reject."


@dataclass
class MetricsTracker:
    """Collects duration measurements and integer counters."""

    timings: Dict[str, float] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)

    def add_time(self, key: str, duration: float) -> None:
        if duration < 0.0:
            return
        self.timings[key] = self.timings.get(key, 0.0) + duration

    def increment(self, key: str, value: int = 1) -> None:
        self.counters[key] = self.counters.get(key, 0) + value

    def get_time(self, key: str) -> float:
        return self.timings.get(key, 0.0)

    def get_count(self, key: str) -> int:
        return self.counters.get(key, 0)

    def merge(self, other: "MetricsTracker") -> None:
        """Fold *other* into this tracker (used for per-worker trackers)."""
        for key, value in other.timings.items():
            self.add_time(key, value)
        for key, count in other.counters.items():
            self.increment(key, count)

    def reject_counts(self) -> Dict[str, int]:
        return {reason: self.get_count(REJECT_PREFIX + reason) for reason in REJECT_REASONS}


def get_tracker() -> "MetricsTracker | None":
    """Return the tracker active in the current context, if any."""

    return _TRACKER_VAR.get()


@contextmanager
def use_tracker(tracker: MetricsTracker) -> Iterator[MetricsTracker]:
    token = _TRACKER_VAR.set(tracker)
    try:
        yield tracker
    finally:
        _TRACKER_VAR.reset(token)


class Timer(AbstractContextManager["Timer"]):
    """Context manager that records elapsed wall-clock time under *key*."""

    def __init__(
        self,
        key: str,
        *,
        tracker: Optional[MetricsTracker] = None,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG,
    ) -> None:
        self.key = key
        self._tracker = tracker
        self._logger = logger
        self._level = level
        self.duration: float = 0.0
        self._start: float | None = None

    def __enter__(self) -> "Timer":  # type: ignore[override]
        self._start = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        if self._start is None:
            return None
        self.duration = perf_counter() - self._start
        tracker = self._tracker or get_tracker()
        if tracker is not None:
            tracker.add_time(self.key, self.duration)
        if self._logger is not None and self._logger.isEnabledFor(self._level):
            self._logger.log(self._level, "[timing] %s took %.3f s", self.key, self.duration)
        return None


__all__ = ["MetricsTracker", "REJECT_PREFIX", "Timer", "get_tracker", "use_tracker"]
