import threading
import time

import pytest

from metricsd.agent.collector import MetricsCollector


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()


def test_start_collect(stop_event):
    collector = MetricsCollector(0.1)
    gauges, counters = collector.start_collect(stop_event)

    time.sleep(0.35)

    first = gauges.get(timeout=0.2)
    assert "Alloc" in first
    assert "RandomValue" in first

    poll = counters.get(timeout=0.2)
    assert "PollCount" in poll
    assert poll["PollCount"] > 0


def test_collect_counters_starts_at_zero():
    assert MetricsCollector(1).collect_counters() == {"PollCount": 0}


def test_collect_gauges_has_runtime_fields():
    gauges = MetricsCollector(1).collect_gauges()
    for name in ("Alloc", "HeapObjects", "NumGC", "TotalAlloc", "Sys"):
        assert name in gauges
    assert 0.0 <= gauges["RandomValue"] < 1.0
    assert gauges["TotalAlloc"] >= gauges["Alloc"] > 0


def test_collect_additional_gauges():
    gauges = MetricsCollector(1).collect_additional_gauges()
    assert gauges["TotalMemory"] >= gauges["FreeMemory"] >= 0
    assert "CPUutilization1" in gauges


def test_collection_stops(stop_event):
    collector = MetricsCollector(0.05)
    gauges, counters = collector.start_collect(stop_event)
    counters.get(timeout=1)
    stop_event.set()
    time.sleep(0.2)
    while not counters.empty():
        counters.get_nowait()
    time.sleep(0.2)
    assert counters.empty()