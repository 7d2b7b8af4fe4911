"""Periodic sending of collected metrics to the server."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Callable, Iterator, Mapping, Protocol

_LOG = logging.getLogger(__name__)


class ServerAPI(Protocol):
    def update_counters(self, counters: Mapping[str, int]) -> None: ...

    def update_gauges(self, gauges: Mapping[str, float]) -> None: ...


class MetricsSender:
    """Every ``report_interval`` drains the metric queues and sends their
    contents with up to ``rate_limit`` concurrent workers."""

    def __init__(
        self,
        server_api: ServerAPI,
        report_interval: timedelta | float,
        rate_limit: int,
        logger: logging.Logger | None = None,
    ) -> None:
        if rate_limit < 1:
            raise ValueError("rate limit must be positive")
        self._api = server_api
        self._interval = (
            report_interval.total_seconds()
            if isinstance(report_interval, timedelta)
            else float(report_interval)
        )
        self._rate_limit = rate_limit
        self._logger = logger or _LOG

    def start_send(
        self,
        stop_event: threading.Event,
        gauges: queue.Queue,
        counters: queue.Queue,
    ) -> None:
        """Run the sending loop until ``stop_event`` is set."""
        with ThreadPoolExecutor(
            max_workers=self._rate_limit, thread_name_prefix="metrics-sender"
        ) as pool:
            while not stop_event.wait(self._interval):
                self._logger.debug("starting to send metrics to server")
                for task in self._aggregate(stop_event, gauges, counters):
                    pool.submit(self._execute, task)
        self._logger.debug("stop sending")

    def _aggregate(
        self,
        stop_event: threading.Event,
        gauges: queue.Queue,
        counters: queue.Queue,
    ) -> Iterator[Callable[[], None]]:
        sources = (
            (gauges, "gauges", self._api.update_gauges),
            (counters, "counters", self._api.update_counters),
        )
        while not stop_event.is_set():
            progressed = False
            for source, label, send in sources:
                try:
                    values = source.get_nowait()
                except queue.Empty:
                    continue
                progressed = True
                self._logger.debug("reading from %s channel", label)
                yield self._task(label, send, values)
            if not progressed:
                break
        self._logger.debug("closing aggregating channel")

    @staticmethod
    def _task(label: str, send: Callable[[object], None], values: object) -> Callable[[], None]:
        def run() -> None:
            try:
                send(values)
            except Exception as exc:
                raise RuntimeError(f"send {label}: {exc}") from exc

        return run

    def _execute(self, task: Callable[[], None]) -> None:
        try:
            task()
        except Exception as exc:
            self._logger.error("failed to execute sending: %s", exc)