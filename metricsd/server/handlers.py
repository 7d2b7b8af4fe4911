"""HTTP handlers of the metrics server.

Every handler takes a werkzeug ``Request`` plus the URL parameters matched
by the router as keyword arguments and returns a werkzeug ``Response``.
"""

from __future__ import annotations

import json
import logging
import math
import re
from decimal import Decimal
from typing import Any, Callable, Iterable, Protocol

from werkzeug.wrappers import Request, Response

from metricsd.model import Counter, Gauge, MetricNotFoundError, Metrics, MetricType

PAGE_TEMPLATE = "<!DOCTYPE html><html><body>{}</body></html>"
JSON_CONTENT_TYPE = "application/json"

Handler = Callable[..., Response]

_LOG = logging.getLogger(__name__)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


class AllMetricsGetter(Protocol):
    def get_gauges(self) -> dict[str, float]: ...

    def get_counters(self) -> dict[str, int]: ...


class MetricsGetter(Protocol):
    def get_gauge(self, name: str) -> float: ...

    def get_counter(self, name: str) -> int: ...


class MetricsUpdater(Protocol):
    def update_gauge(self, name: str, value: float) -> float: ...

    def update_counter(self, name: str, value: int) -> int: ...

    def update_gauges(self, values: Iterable[Gauge]) -> None: ...

    def update_counters(self, values: Iterable[Counter]) -> None: ...


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


_DECODER = json.JSONDecoder(parse_constant=_reject_constant)


def _decode_json(request: Request) -> Any:
    """Decode the first JSON value of the request body."""
    text = request.get_data().decode("utf-8").lstrip(" \t\r\n")
    if not text:
        raise ValueError("EOF")
    value, _ = _DECODER.raw_decode(text)
    return value


def _decode_metric(request: Request) -> Metrics:
    data = _decode_json(request)
    return Metrics() if data is None else Metrics.from_dict(data)


def _json_response(metric: Metrics | None = None, status: int = 200) -> Response:
    body = "" if metric is None else json.dumps(metric.to_dict()) + "\n"
    return Response(body, status=status, content_type=JSON_CONTENT_TYPE)


def _parse_float(raw: str) -> float:
    if not _FLOAT_RE.fullmatch(raw):
        raise ValueError(f"invalid float {raw!r}")
    value = float(raw)
    if math.isinf(value) and "inf" not in raw.lower():
        raise ValueError(f"float {raw!r} out of range")
    return value


def _parse_int64(raw: str) -> int:
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"invalid integer {raw!r}")
    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer {raw!r} out of range")
    return value


def _special_float(value: float) -> str | None:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return None


def format_gauge(value: float) -> str:
    """Shortest decimal form of ``value`` without an exponent."""
    special = _special_float(value)
    if special is not None:
        return special
    return format(Decimal(repr(value)).normalize(), "f")


def _format_fixed3(value: float) -> str:
    special = _special_float(value)
    return special if special is not None else f"{value:.3f}"


def list_handler(getter: AllMetricsGetter, logger: logging.Logger | None = None) -> Handler:
    """Return a handler rendering all gauges and counters as an HTML page."""
    log = logger or _LOG

    def handler(request: Request, **params: str) -> Response:
        try:
            gauges = getter.get_gauges()
        except Exception as exc:
            log.error("error retrieving gauges: %s", exc)
            return Response(status=500, content_type="text/html")
        try:
            counters = getter.get_counters()
        except Exception as exc:
            log.error("error retrieving counters: %s", exc)
            return Response(status=500, content_type="text/html")

        lines = [f"{name}: {_format_fixed3(value)}" for name, value in gauges.items()]
        lines += [f"{name}: {value}" for name, value in counters.items()]
        page = PAGE_TEMPLATE.format("<br>".join(lines))
        return Response(page, content_type="text/html")

    return handler


def ping_handler(pinger: Callable[[], object] | None) -> Handler:
    """Return a handler answering 500 when ``pinger`` is missing or raises."""

    def handler(request: Request, **params: str) -> Response:
        if pinger is None:
            return Response(status=500)
        try:
            pinger()
        except Exception:
            return Response(status=500)
        return Response(status=200)

    return handler


def read_handler(getter: MetricsGetter, logger: logging.Logger | None = None) -> Handler:
    """Return a handler answering a metric value as plain text, 404 if unknown."""
    log = logger or _LOG

    def handler(request: Request, **params: str) -> Response:
        mtype = params.get("type", "")
        name = params.get("name", "")
        try:
            if mtype == MetricType.COUNTER.value:
                text = str(getter.get_counter(name))
            elif mtype == MetricType.GAUGE.value:
                text = format_gauge(getter.get_gauge(name))
            else:
                return Response(status=404)
        except MetricNotFoundError:
            return Response(status=404)
        except Exception as exc:
            log.error("error during processing metrics read request: %s", exc)
            return Response(status=500)
        return Response(text, mimetype="text/plain")

    return handler


def read_json_handler(getter: MetricsGetter) -> Handler:
    """Return a handler reading a metric described by a JSON body."""

    def handler(request: Request, **params: str) -> Response:
        try:
            requested = _decode_metric(request)
        except ValueError:
            return _json_response(status=400)

        mtype, name = requested.mtype, requested.id
        try:
            if mtype == MetricType.COUNTER.value:
                reply = Metrics(id=name, mtype=mtype, delta=getter.get_counter(name))
            elif mtype == MetricType.GAUGE.value:
                reply = Metrics(id=name, mtype=mtype, value=getter.get_gauge(name))
            else:
                return _json_response(status=404)
        except MetricNotFoundError:
            return _json_response(status=404)
        except Exception:
            return _json_response(status=500)
        return _json_response(reply)

    return handler


class UpdateAPI:
    """Handlers updating metrics in a storage."""

    def __init__(self, updater: MetricsUpdater, logger: logging.Logger | None = None) -> None:
        self._updater = updater
        self._logger = logger or _LOG

    def handle_plain(self, request: Request, **params: str) -> Response:
        """Update one metric given as ``/update/<type>/<name>/<value>``."""
        mtype = params.get("type", "")
        name = params.get("name", "")
        raw = params.get("value", "")

        parse: Callable[[str], Any]
        update: Callable[[str, Any], Any]
        if mtype == MetricType.GAUGE.value:
            parse, update = _parse_float, self._updater.update_gauge
        elif mtype == MetricType.COUNTER.value:
            parse, update = _parse_int64, self._updater.update_counter
        else:
            return Response(status=400)

        try:
            value = parse(raw)
        except ValueError:
            return Response(status=400)
        try:
            update(name, value)
        except Exception as exc:
            self._logger.error("error updating metric %s: %s", name, exc)
            return Response(status=500)
        return Response(status=200)

    def handle_json(self, request: Request, **params: str) -> Response:
        """Update one metric from a JSON body and answer its new value."""
        try:
            metric = _decode_metric(request)
        except ValueError as exc:
            self._logger.error("can not decode request body: %s", exc)
            return _json_response(status=400)

        mtype, name = metric.mtype, metric.id
        try:
            if mtype == MetricType.GAUGE.value:
                if metric.value is None:
                    return _json_response(status=400)
                updated = self._updater.update_gauge(name, metric.value)
                reply = Metrics(id=name, mtype=mtype, value=float(updated))
            elif mtype == MetricType.COUNTER.value:
                if metric.delta is None:
                    return _json_response(status=400)
                total = self._updater.update_counter(name, metric.delta)
                reply = Metrics(id=name, mtype=mtype, delta=int(total))
            else:
                return _json_response(status=400)
        except Exception as exc:
            self._logger.error("error updating metric %s: %s", name, exc)
            return _json_response(status=500)
        return _json_response(reply)

    def handle_json_batch(self, request: Request, **params: str) -> Response:
        """Update every metric of a JSON array; answer with an empty body."""
        try:
            data = _decode_json(request)
            if data is None:
                data = []
            if not isinstance(data, list):
                raise ValueError("request body must be a JSON array")
            metrics = [Metrics() if item is None else Metrics.from_dict(item) for item in data]
        except ValueError as exc:
            self._logger.error("can not decode request body: %s", exc)
            return _json_response(status=400)

        gauges: list[Gauge] = []
        counters: list[Counter] = []
        for metric in metrics:
            if metric.mtype == MetricType.GAUGE.value and metric.value is not None:
                gauges.append(Gauge(metric.id, metric.value))
            elif metric.mtype == MetricType.COUNTER.value and metric.delta is not None:
                counters.append(Counter(metric.id, metric.delta))
            else:
                return _json_response(status=400)

        try:
            if gauges:
                self._updater.update_gauges(gauges)
            if counters:
                self._updater.update_counters(counters)
        except Exception as exc:
            self._logger.error("error updating metrics batch: %s", exc)
            return _json_response(status=500)
        return _json_response()