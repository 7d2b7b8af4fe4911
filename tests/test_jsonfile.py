import json
import time
from datetime import timedelta

import pytest

from metricsd.model import Counter, Gauge
from metricsd.storage.jsonfile import FileStorage, JsonFileDB


@pytest.fixture
def db_file(tmp_path):
    path = tmp_path / "db.json"
    path.touch()
    with open(path, "r+", encoding="utf-8") as fh:
        yield path, JsonFileDB(fh)


def test_load_empty_file_returns_empty_maps(db_file):
    _, db = db_file
    assert db.load() == ({}, {})


def test_save_load_round_trip(db_file):
    _, db = db_file
    db.save({"g": 1.5, "h": 2.25}, {"c": 7})
    assert db.load() == ({"g": 1.5, "h": 2.25}, {"c": 7})


def test_save_replaces_previous_content(db_file):
    path, db = db_file
    db.save({f"gauge{i}": float(i) for i in range(50)}, {"c": 1})
    db.save({"only": 0.5}, {})
    assert db.load() == ({"only": 0.5}, {})
    assert json.loads(path.read_text()) == {"Counters": {}, "Gauges": {"only": 0.5}}


def test_saved_document_layout(db_file):
    path, db = db_file
    db.save({"g": 1.5}, {"c": 3})
    text = path.read_text()
    assert text.startswith('{\n    "Counters"')
    assert json.loads(text) == {"Counters": {"c": 3}, "Gauges": {"g": 1.5}}


def test_load_accepts_null_maps(tmp_path):
    path = tmp_path / "db.json"
    path.write_text('{"Counters": null, "Gauges": null}')
    with open(path, "r+", encoding="utf-8") as fh:
        assert JsonFileDB(fh).load() == ({}, {})


@pytest.mark.parametrize(
    "content",
    ["not json", '{"Counters": {"c": 1.5}}', '{"Gauges": {"g": "x"}}', "[1, 2]"],
)
def test_load_rejects_invalid_content(tmp_path, content):
    path = tmp_path / "db.json"
    path.write_text(content)
    with open(path, "r+", encoding="utf-8") as fh:
        with pytest.raises(ValueError):
            JsonFileDB(fh).load()


def test_close_closes_file(tmp_path):
    path = tmp_path / "db.json"
    fh = open(path, "w+", encoding="utf-8")
    JsonFileDB(fh).close()
    assert fh.closed


def _read(path):
    return json.loads(path.read_text())


def test_instant_sync_writes_each_update(tmp_path):
    path = tmp_path / "metrics.json"
    with FileStorage(path, 0, False) as store:
        assert store.update_gauge("g", 1.5) == 1.5
        assert _read(path)["Gauges"] == {"g": 1.5}
        store.update_counter("c", 4)
        assert _read(path)["Counters"] == {"c": 4}


def test_instant_sync_batch_updates(tmp_path):
    path = tmp_path / "metrics.json"
    with FileStorage(path, timedelta(0), False) as store:
        store.update_gauges([Gauge("a", 0.5), Gauge("b", 2.0)])
        store.update_counters([Counter("c", 3)])
        assert _read(path) == {"Counters": {"c": 3}, "Gauges": {"a": 0.5, "b": 2.0}}


def test_restore_reads_saved_metrics(tmp_path):
    path = tmp_path / "metrics.json"
    path.write_text(json.dumps({"Counters": {"c": 5}, "Gauges": {"g": 2.5}}))
    with FileStorage(path, 0, True) as store:
        assert store.get_counter("c") == 5
        assert store.get_gauges() == {"g": 2.5}


def test_without_restore_starts_empty(tmp_path):
    path = tmp_path / "metrics.json"
    path.write_text(json.dumps({"Counters": {"c": 5}, "Gauges": {"g": 2.5}}))
    with FileStorage(path, 0, False) as store:
        assert store.get_counters() == {}
        assert store.get_gauges() == {}


def test_restore_from_invalid_file_raises(tmp_path):
    path = tmp_path / "metrics.json"
    path.write_text("garbage")
    with pytest.raises(ValueError):
        FileStorage(path, 0, True)


def test_negative_interval_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="non-negative"):
        FileStorage(tmp_path / "metrics.json", -1, False)


def test_periodic_saving(tmp_path):
    path = tmp_path / "metrics.json"
    with FileStorage(path, 0.02, False) as store:
        store.update_gauge("g", 0.25)
        assert path.read_text() == ""
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and not path.read_text():
            time.sleep(0.01)
        assert _read(path)["Gauges"] == {"g": 0.25}


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "metrics.json"
    with FileStorage(path, 0, False) as store:
        store.update_counter("c", 12)
        store.update_gauge("g", 34.56)
    with FileStorage(path, 0, True) as reopened:
        assert reopened.get_counters() == {"c": 12}
        assert reopened.get_gauges() == {"g": 34.56}