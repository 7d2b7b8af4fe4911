"""HTTP client sending batches of metrics to the metrics server."""

from __future__ import annotations

import base64
import gzip
import hashlib
import hmac
import json
import logging
import time
from typing import Callable, Mapping

import requests

from metricsd.model import Metrics, MetricType
from metricsd.retry import call_with_retry

HEADER_HASH_SHA256 = "HashSHA256"

_LOG = logging.getLogger(__name__)


class ServerClient:
    """Posts gzip-compressed JSON batches to ``/updates/``.

    With a non-empty ``hash_key`` the compressed body is signed with
    HMAC-SHA256 in the ``HashSHA256`` header. Transport errors are retried;
    HTTP error statuses are not treated as failures.
    """

    def __init__(
        self,
        server_address: str,
        hash_key: str = "",
        logger: logging.Logger | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self._url = f"http://{server_address}/updates/"
        self._hash_key = hash_key
        self._logger = logger or _LOG
        self._session = session or requests.Session()
        self._sleep = sleep

    def update_counters(self, counters: Mapping[str, int]) -> None:
        """Send counter increments."""
        self._send(
            Metrics(id=name, mtype=MetricType.COUNTER, delta=delta)
            for name, delta in counters.items()
        )

    def update_gauges(self, gauges: Mapping[str, float]) -> None:
        """Send gauge values."""
        self._send(
            Metrics(id=name, mtype=MetricType.GAUGE, value=value)
            for name, value in gauges.items()
        )

    def _send(self, metrics) -> None:
        payload = json.dumps([m.to_dict() for m in metrics]) + "\n"
        body = gzip.compress(payload.encode("utf-8"))
        headers = {"Content-Type": "application/json", "Content-Encoding": "gzip"}
        if self._hash_key:
            digest = hmac.new(self._hash_key.encode("utf-8"), body, hashlib.sha256)
            headers[HEADER_HASH_SHA256] = base64.b64encode(digest.digest()).decode("ascii")

        def post() -> requests.Response:
            response = self._session.post(self._url, data=body, headers=headers)
            self._logger.debug("metrics sent, status %s", response.status_code)
            return response

        call_with_retry(post, self._sleep)