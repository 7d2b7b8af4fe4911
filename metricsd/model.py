"""Metric data types shared by the agent and the server."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class MetricType(str, Enum):
    """Kinds of metrics understood by the server."""

    GAUGE = "gauge"
    COUNTER = "counter"


class MetricNotFoundError(LookupError):
    """Raised when a storage has no metric with the requested name."""

    def __init__(self, message: str = "metric not found") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Gauge:
    """A named gauge value."""

    name: str
    value: float


@dataclass(frozen=True)
class Counter:
    """A named counter increment."""

    name: str
    value: int


@dataclass
class Metrics:
    """Wire representation of a single metric.

    ``delta`` carries a counter value, ``value`` a gauge value; either may be
    absent and is then left out of the serialized form.
    """

    id: str = ""
    mtype: str = ""
    delta: int | None = None
    value: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.mtype, MetricType):
            self.mtype = self.mtype.value

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready mapping, omitting absent values."""
        data: dict[str, Any] = {"id": self.id, "type": self.mtype}
        if self.delta is not None:
            data["delta"] = self.delta
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Metrics":
        """Build a metric from a decoded JSON object.

        Raises ValueError when a field has the wrong type.
        """
        if not isinstance(data, Mapping):
            raise ValueError("metric must be a JSON object")

        metric_id = data.get("id")
        if metric_id is None:
            metric_id = ""
        elif not isinstance(metric_id, str):
            raise ValueError("field 'id' must be a string")

        mtype = data.get("type")
        if mtype is None:
            mtype = ""
        elif not isinstance(mtype, str):
            raise ValueError("field 'type' must be a string")

        delta = data.get("delta")
        if delta is not None:
            if isinstance(delta, bool) or not isinstance(delta, int):
                raise ValueError("field 'delta' must be an integer")
            if not _INT64_MIN <= delta <= _INT64_MAX:
                raise ValueError("field 'delta' is out of range")

        value = data.get("value")
        if value is not None:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError("field 'value' must be a number")
            value = float(value)

        return cls(id=metric_id, mtype=mtype, delta=delta, value=value)