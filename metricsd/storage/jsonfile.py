"""Metric storage persisted to a JSON file."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import timedelta
from typing import IO, Iterable

from metricsd.model import Counter, Gauge
from metricsd.retry import call_with_retry
from metricsd.storage.memory import MemStorage


class JsonFileDB:
    """Writes and reads a snapshot of all metrics in a single open file."""

    def __init__(self, file: IO[str]) -> None:
        self._file = file
        self._lock = threading.Lock()

    def save(self, gauges: dict[str, float], counters: dict[str, int]) -> None:
        """Replace the file content with the given metrics."""
        content = {"Counters": dict(counters), "Gauges": dict(gauges)}
        text = json.dumps(content, indent=4, sort_keys=True) + "\n"
        with self._lock:
            self._file.seek(0)
            self._file.truncate(0)
            self._file.write(text)
            self._file.flush()
            os.fsync(self._file.fileno())

    def load(self) -> tuple[dict[str, float], dict[str, int]]:
        """Return ``(gauges, counters)`` read from the file.

        An empty file yields empty maps; malformed content raises ValueError.
        """
        with self._lock:
            self._file.seek(0)
            text = self._file.read()
        if not text:
            return {}, {}

        try:
            content, _ = json.JSONDecoder().raw_decode(text.lstrip())
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"error decoding file content for metrics restore: {exc}"
            ) from exc
        if not isinstance(content, dict):
            raise ValueError("error decoding file content for metrics restore")

        raw_gauges = content.get("Gauges") or {}
        raw_counters = content.get("Counters") or {}
        if not isinstance(raw_gauges, dict) or not isinstance(raw_counters, dict):
            raise ValueError("error decoding file content for metrics restore")

        gauges: dict[str, float] = {}
        for name, value in raw_gauges.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"invalid gauge value for {name!r}")
            gauges[name] = float(value)

        counters: dict[str, int] = {}
        for name, value in raw_counters.items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"invalid counter value for {name!r}")
            counters[name] = value

        return gauges, counters

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()


def _open_file(path: str | os.PathLike[str]) -> IO[str]:
    def attempt() -> IO[str]:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
        return os.fdopen(fd, "r+", encoding="utf-8")

    return call_with_retry(attempt)


class FileStorage(MemStorage):
    """In-memory storage that is mirrored to a JSON file.

    With a zero ``store_interval`` every update is written at once; with a
    positive one a background thread saves periodically.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        store_interval: timedelta | float,
        should_restore: bool,
        logger: logging.Logger | None = None,
    ) -> None:
        interval = (
            store_interval.total_seconds()
            if isinstance(store_interval, timedelta)
            else float(store_interval)
        )
        if interval < 0:
            raise ValueError("error creating store: storeInterval must be non-negative")

        super().__init__()
        self._logger = logger or logging.getLogger(__name__)
        self._instant_sync = False
        self._db = JsonFileDB(_open_file(path))

        if should_restore:
            try:
                gauges, counters = self._db.load()
            except Exception:
                self._db.close()
                raise
            super().update_counters(Counter(k, v) for k, v in counters.items())
            super().update_gauges(Gauge(k, v) for k, v in gauges.items())

        self._stop = threading.Event()
        self._saver: threading.Thread | None = None
        if interval == 0:
            self._instant_sync = True
        else:
            self._saver = threading.Thread(
                target=self._save_periodically,
                args=(interval,),
                name="metrics-file-saver",
                daemon=True,
            )
            self._saver.start()

    def update_gauge(self, name: str, value: float) -> float:
        result = super().update_gauge(name, value)
        self._sync()
        return result

    def update_counter(self, name: str, value: int) -> int:
        result = super().update_counter(name, value)
        self._sync()
        return result

    def update_gauges(self, values: Iterable[Gauge]) -> None:
        super().update_gauges(values)
        self._sync()

    def update_counters(self, values: Iterable[Counter]) -> None:
        super().update_counters(values)
        self._sync()

    def save(self) -> None:
        """Write the current metrics to the file, logging any failure."""
        try:
            self._db.save(self.get_gauges(), self.get_counters())
        except (OSError, ValueError) as exc:
            self._logger.error("error saving metrics: %s", exc)

    def close(self) -> None:
        """Stop periodic saving and close the file."""
        self._stop.set()
        if self._saver is not None:
            self._saver.join()
        self._db.close()

    def __enter__(self) -> "FileStorage":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _sync(self) -> None:
        if self._instant_sync:
            self.save()

    def _save_periodically(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.save()