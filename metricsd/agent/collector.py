"""Periodic collection of runtime and operating-system metrics."""

from __future__ import annotations

import gc
import logging
import queue
import random
import threading
import time
from datetime import timedelta

import psutil

_LOG = logging.getLogger(__name__)
_PUT_TIMEOUT = 0.1


class _GcTracker:
    """Records garbage-collector pauses through ``gc.callbacks``."""

    def __init__(self) -> None:
        self.last_gc_ns = 0
        self.pause_total_ns = 0
        self._started: int | None = None

    def __call__(self, phase: str, info: dict) -> None:
        if phase == "start":
            self._started = time.perf_counter_ns()
        elif phase == "stop" and self._started is not None:
            self.pause_total_ns += time.perf_counter_ns() - self._started
            self.last_gc_ns = time.time_ns()
            self._started = None


_TRACKER = _GcTracker()


def _put(target: queue.Queue, item: object, stop_event: threading.Event) -> bool:
    while not stop_event.is_set():
        try:
            target.put(item, timeout=_PUT_TIMEOUT)
            return True
        except queue.Full:
            continue
    return False


class MetricsCollector:
    """Collects metrics every ``poll_interval`` until stopped.

    Fields of the runtime memory report that have no counterpart in this
    interpreter are reported as 0.
    """

    def __init__(
        self,
        poll_interval: timedelta | float,
        logger: logging.Logger | None = None,
    ) -> None:
        self._poll_interval = (
            poll_interval.total_seconds()
            if isinstance(poll_interval, timedelta)
            else float(poll_interval)
        )
        self._logger = logger or _LOG
        self._iterations = 0
        self._process = psutil.Process()
        self._peak_rss = 0
        if _TRACKER not in gc.callbacks:
            gc.callbacks.append(_TRACKER)

    def start_collect(
        self, stop_event: threading.Event
    ) -> tuple[queue.Queue, queue.Queue]:
        """Start collecting in a background thread.

        Returns a queue of gauge maps and a queue of counter maps. Collection
        stops when ``stop_event`` is set.
        """
        gauges: queue.Queue = queue.Queue(maxsize=2)
        counters: queue.Queue = queue.Queue(maxsize=1)

        def loop() -> None:
            while not stop_event.wait(self._poll_interval):
                self._iterations += 1
                delivered = (
                    _put(gauges, self.collect_gauges(), stop_event)
                    and _put(gauges, self.collect_additional_gauges(), stop_event)
                    and _put(counters, self.collect_counters(), stop_event)
                )
                if delivered:
                    self._logger.debug("metrics has been collected")
            self._logger.debug("stop collecting")

        threading.Thread(target=loop, name="metrics-collector", daemon=True).start()
        return gauges, counters

    def collect_gauges(self) -> dict[str, float]:
        """Return memory and garbage-collector gauges of this process."""
        mem = self._process.memory_info()
        stats = gc.get_stats()
        collections = sum(s.get("collections", 0) for s in stats)
        collected = sum(s.get("collected", 0) for s in stats)
        heap_objects = len(gc.get_objects())
        self._peak_rss = max(self._peak_rss, mem.rss)
        uptime_ns = max(time.time() - self._process.create_time(), 1e-9) * 1e9
        stack = threading.stack_size()

        return {
            "Alloc": float(mem.rss),
            "BuckHashSys": 0.0,
            "Frees": float(collected),
            "GCCPUFraction": _TRACKER.pause_total_ns / uptime_ns,
            "GCSys": 0.0,
            "HeapAlloc": float(mem.rss),
            "HeapIdle": float(max(mem.vms - mem.rss, 0)),
            "HeapInuse": float(mem.rss),
            "HeapObjects": float(heap_objects),
            "HeapReleased": 0.0,
            "HeapSys": float(mem.vms),
            "LastGC": float(_TRACKER.last_gc_ns),
            "Lookups": 0.0,
            "MCacheInuse": 0.0,
            "MCacheSys": 0.0,
            "MSpanInuse": 0.0,
            "MSpanSys": 0.0,
            "Mallocs": float(heap_objects + collected),
            "NextGC": float(gc.get_threshold()[0]),
            "NumForcedGC": 0.0,
            "NumGC": float(collections),
            "OtherSys": 0.0,
            "PauseTotalNs": float(_TRACKER.pause_total_ns),
            "StackInuse": float(stack),
            "StackSys": float(stack),
            "Sys": float(mem.vms),
            "TotalAlloc": float(self._peak_rss),
            "RandomValue": random.random(),
        }

    def collect_additional_gauges(self) -> dict[str, float]:
        """Return system memory totals and per-core CPU utilisation."""
        gauges: dict[str, float] = {}
        try:
            memory = psutil.virtual_memory()
            gauges["TotalMemory"] = float(memory.total)
            gauges["FreeMemory"] = float(memory.free)
        except (OSError, psutil.Error) as exc:
            self._logger.error("failed to collect additional memory gauges: %s", exc)

        try:
            usage = psutil.cpu_percent(interval=None, percpu=True)
            for number, value in enumerate(usage, start=1):
                gauges[f"CPUutilization{number}"] = float(value)
        except (OSError, psutil.Error) as exc:
            self._logger.error("failed to collect additional cpu usage gauges: %s", exc)

        return gauges

    def collect_counters(self) -> dict[str, int]:
        """Return the number of completed polls."""
        return {"PollCount": self._iterations}