"""Thread-safe in-memory metric storage."""

from __future__ import annotations

import threading
from typing import Iterable

from metricsd.model import Counter, Gauge, MetricNotFoundError


class MemStorage:
    """Keeps gauges and counters in dictionaries guarded by a lock."""

    def __init__(self) -> None:
        self._gauges: dict[str, float] = {}
        self._counters: dict[str, int] = {}
        self._lock = threading.RLock()

    def get_gauges(self) -> dict[str, float]:
        """Return a copy of all gauges."""
        with self._lock:
            return dict(self._gauges)

    def get_counters(self) -> dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return dict(self._counters)

    def get_gauge(self, name: str) -> float:
        """Return a gauge value; raise MetricNotFoundError if absent."""
        with self._lock:
            try:
                return self._gauges[name]
            except KeyError:
                raise MetricNotFoundError() from None

    def get_counter(self, name: str) -> int:
        """Return a counter value; raise MetricNotFoundError if absent."""
        with self._lock:
            try:
                return self._counters[name]
            except KeyError:
                raise MetricNotFoundError() from None

    def update_gauge(self, name: str, value: float) -> float:
        """Set a gauge and return its new value."""
        with self._lock:
            self._gauges[name] = value
            return value

    def update_counter(self, name: str, value: int) -> int:
        """Add to a counter and return its new total."""
        with self._lock:
            total = self._counters.get(name, 0) + value
            self._counters[name] = total
            return total

    def update_gauges(self, values: Iterable[Gauge]) -> None:
        """Set several gauges at once."""
        with self._lock:
            for gauge in values:
                self._gauges[gauge.name] = gauge.value

    def update_counters(self, values: Iterable[Counter]) -> None:
        """Add to several counters at once."""
        with self._lock:
            for counter in values:
                self._counters[counter.name] = (
                    self._counters.get(counter.name, 0) + counter.value
                )