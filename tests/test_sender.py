import logging
import queue
import threading
import time

import pytest

from metricsd.agent.sender import MetricsSender


class FakeServerAPI:
    def __init__(self, fail_gauges=False):
        self.gauge_calls = []
        self.counter_calls = []
        self._fail_gauges = fail_gauges
        self._lock = threading.Lock()

    def update_gauges(self, gauges):
        with self._lock:
            self.gauge_calls.append(gauges)
        if self._fail_gauges:
            raise RuntimeError("boom")

    def update_counters(self, counters):
        with self._lock:
            self.counter_calls.append(counters)


def _run(sender, gauges, counters):
    stop = threading.Event()
    thread = threading.Thread(target=sender.start_send, args=(stop, gauges, counters))
    thread.start()
    return stop, thread


def test_start_send():
    api = FakeServerAPI()
    gauges = queue.Queue(maxsize=1)
    counters = queue.Queue(maxsize=1)
    sender = MetricsSender(api, 0.1, 10)

    stop, thread = _run(sender, gauges, counters)
    gauges.put({"test_gauge": 42.0})
    counters.put({"test_counter": 1})
    time.sleep(0.3)
    stop.set()
    thread.join(timeout=5)

    assert api.gauge_calls == [{"test_gauge": 42.0}]
    assert api.counter_calls == [{"test_counter": 1}]
    assert not thread.is_alive()


def test_failed_send_is_logged(caplog):
    caplog.set_level(logging.ERROR)
    api = FakeServerAPI(fail_gauges=True)
    gauges = queue.Queue()
    counters = queue.Queue()
    sender = MetricsSender(api, 0.05, 2, logging.getLogger("tests.sender"))

    gauges.put({"g": 1.0})
    counters.put({"c": 2})
    stop, thread = _run(sender, gauges, counters)
    time.sleep(0.3)
    stop.set()
    thread.join(timeout=5)

    assert "failed to execute sending: send gauges: boom" in caplog.text
    assert api.counter_calls == [{"c": 2}]


def test_all_queued_values_are_sent():
    api = FakeServerAPI()
    gauges = queue.Queue()
    counters = queue.Queue()
    for number in range(5):
        gauges.put({"g": float(number)})
    sender = MetricsSender(api, 0.05, 3)

    stop, thread = _run(sender, gauges, counters)
    time.sleep(0.3)
    stop.set()
    thread.join(timeout=5)

    assert sorted(call["g"] for call in api.gauge_calls) == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert api.counter_calls == []


def test_rate_limit_must_be_positive():
    with pytest.raises(ValueError):
        MetricsSender(FakeServerAPI(), 1, 0)