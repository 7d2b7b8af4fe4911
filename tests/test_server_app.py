import json
from datetime import timedelta
from unittest import mock

import pytest
from werkzeug.test import Client

from metricsd.model import MetricNotFoundError
from metricsd.server.app import create_store, main
from metricsd.server.config import ServerConfig

_ENV_VARS = (
    "ADDRESS",
    "STORE_INTERVAL",
    "FILE_STORAGE_PATH",
    "RESTORE",
    "DATABASE_DSN",
    "KEY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_memory_store_when_nothing_configured():
    config = ServerConfig(file_storage_path="", database_dsn="")
    store, close = create_store(config, None)
    assert store.update_counter("c", 5) == 5
    assert store.update_counter("c", 5) == 10
    with pytest.raises(MetricNotFoundError):
        store.get_gauge("missing")
    close()


def test_file_store_writes_updates(tmp_path):
    path = tmp_path / "db.json"
    config = ServerConfig(
        file_storage_path=str(path), store_interval=timedelta(0), restore=False
    )
    store, close = create_store(config, None)
    store.update_gauge("g", 1.5)
    close()
    content = json.loads(path.read_text())
    assert content["Gauges"] == {"g": 1.5}


def test_file_store_restores(tmp_path):
    path = tmp_path / "db.json"
    path.write_text(json.dumps({"Counters": {"c": 3}, "Gauges": {"g": 2.5}}))
    config = ServerConfig(
        file_storage_path=str(path), store_interval=timedelta(0), restore=True
    )
    store, close = create_store(config, None)
    try:
        assert store.get_counter("c") == 3
        assert store.get_gauge("g") == 2.5
    finally:
        close()


def test_negative_store_interval_is_rejected(tmp_path):
    config = ServerConfig(
        file_storage_path=str(tmp_path / "db.json"),
        store_interval=timedelta(seconds=-1),
        restore=False,
    )
    with pytest.raises(RuntimeError, match="error creating file storage"):
        create_store(config, None)


def test_main_serves_on_configured_address(clean_env, tmp_path):
    path = tmp_path / "db.json"
    argv = ["-a", "127.0.0.1:9999", "-f", str(path), "-i", "0", "-r", "false"]
    with mock.patch("metricsd.server.app.run_simple") as run:
        assert main(argv) == 0
    args = run.call_args.args
    assert args[0] == "127.0.0.1"
    assert args[1] == 9999
    client = Client(args[2])
    assert client.post("/update/counter/c/7").status_code == 200
    assert client.get("/value/counter/c").get_data(as_text=True) == "7"
    assert client.get("/ping").status_code == 500


def test_main_rejects_bad_environment(clean_env):
    clean_env.setenv("STORE_INTERVAL", "abc")
    with mock.patch("metricsd.server.app.run_simple") as run:
        assert main([]) == 1
    assert run.call_count == 0


def test_main_rejects_address_without_port(clean_env, tmp_path):
    argv = ["-a", "nocolon", "-f", str(tmp_path / "db.json"), "-i", "0"]
    with mock.patch("metricsd.server.app.run_simple") as run:
        assert main(argv) == 1
    assert run.call_count == 0