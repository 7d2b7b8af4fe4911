"""Metric storage backed by a SQL database with ``gauge`` and ``counter`` tables."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from metricsd.model import Counter, Gauge, MetricNotFoundError

_SELECT_GAUGES = text("SELECT id, value FROM gauge")
_SELECT_COUNTERS = text("SELECT id, delta FROM counter")
_SELECT_GAUGE = text("SELECT value FROM gauge WHERE id = :id")
_SELECT_COUNTER = text("SELECT delta FROM counter WHERE id = :id")
_UPSERT_GAUGE = text(
    "INSERT INTO gauge (id, value) VALUES (:id, :value) "
    "ON CONFLICT (id) DO UPDATE SET value = EXCLUDED.value"
)
_UPSERT_COUNTER = text(
    "INSERT INTO counter (id, delta) VALUES (:id, :delta) "
    "ON CONFLICT (id) DO UPDATE SET delta = EXCLUDED.delta + counter.delta"
)


def _upsert_gauge(conn: Connection, name: str, value: float) -> None:
    conn.execute(_UPSERT_GAUGE, {"id": name, "value": value})


def _upsert_counter(conn: Connection, name: str, value: int) -> None:
    conn.execute(_UPSERT_COUNTER, {"id": name, "delta": value})


class PostgresStorage:
    """Stores gauges and counters in database tables.

    Database errors propagate as SQLAlchemy exceptions; batch updates run in
    a single transaction and are rolled back as a whole on failure.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_gauges(self) -> dict[str, float]:
        """Return all gauges."""
        with self._engine.connect() as conn:
            rows = conn.execute(_SELECT_GAUGES).all()
        return {row[0]: float(row[1]) for row in rows}

    def get_counters(self) -> dict[str, int]:
        """Return all counters."""
        with self._engine.connect() as conn:
            rows = conn.execute(_SELECT_COUNTERS).all()
        return {row[0]: int(row[1]) for row in rows}

    def get_gauge(self, name: str) -> float:
        """Return a gauge value; raise MetricNotFoundError if absent."""
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT_GAUGE, {"id": name}).first()
        if row is None:
            raise MetricNotFoundError()
        return float(row[0])

    def get_counter(self, name: str) -> int:
        """Return a counter value; raise MetricNotFoundError if absent."""
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT_COUNTER, {"id": name}).first()
        if row is None:
            raise MetricNotFoundError()
        return int(row[0])

    def update_gauge(self, name: str, value: float) -> float:
        """Set a gauge and return the stored value."""
        with self._engine.begin() as conn:
            _upsert_gauge(conn, name, value)
        return self.get_gauge(name)

    def update_counter(self, name: str, value: int) -> int:
        """Add to a counter and return the stored total."""
        with self._engine.begin() as conn:
            _upsert_counter(conn, name, value)
        return self.get_counter(name)

    def update_gauges(self, values: Iterable[Gauge]) -> None:
        """Set several gauges in one transaction."""
        with self._engine.begin() as conn:
            for gauge in values:
                _upsert_gauge(conn, gauge.name, gauge.value)

    def update_counters(self, values: Iterable[Counter]) -> None:
        """Add to several counters in one transaction."""
        with self._engine.begin() as conn:
            for counter in values:
                _upsert_counter(conn, counter.name, counter.value)