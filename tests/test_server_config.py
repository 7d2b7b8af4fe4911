from datetime import timedelta

import pytest

from metricsd.server.config import ServerConfig, load_server_config


def test_load_server_config_from_environment():
    environ = {
        "ADDRESS": "123",
        "STORE_INTERVAL": "2",
        "FILE_STORAGE_PATH": "/a/b/c/file.txt",
        "RESTORE": "true",
        "DATABASE_DSN": "my-db-dsn",
    }
    want = ServerConfig(
        server_address="123",
        store_interval=timedelta(seconds=2),
        file_storage_path="/a/b/c/file.txt",
        restore=True,
        database_dsn="my-db-dsn",
        key="",
    )
    assert load_server_config([], environ) == want


def test_defaults():
    cfg = load_server_config([], {})
    assert cfg == ServerConfig(
        server_address="localhost:8080",
        store_interval=timedelta(seconds=300),
        file_storage_path="db.json",
        restore=True,
        database_dsn="",
        key="",
    )


def test_flags():
    cfg = load_server_config(
        ["-a", ":9000", "-i", "0", "-f", "/tmp/m.json", "-r=false",
         "-d", "dsn", "-k", "placeholder"],
        {},
    )
    assert cfg == ServerConfig(
        server_address=":9000",
        store_interval=timedelta(0),
        file_storage_path="/tmp/m.json",
        restore=False,
        database_dsn="dsn",
        key="placeholder",
    )


def test_legacy_file_storage_flag_name():
    cfg = load_server_config(["-db.json", "other.json"], {})
    assert cfg.file_storage_path == "other.json"


def test_bare_restore_flag_enables_restore():
    cfg = load_server_config(["-r"], {"RESTORE": ""})
    assert cfg.restore is True


def test_environment_overrides_flags():
    cfg = load_server_config(["-r=true", "-i", "10"], {"RESTORE": "0", "STORE_INTERVAL": "4"})
    assert cfg.restore is False
    assert cfg.store_interval == timedelta(seconds=4)


def test_key_from_environment():
    cfg = load_server_config(["-k", "token"], {"KEY": "placeholder"})
    assert cfg.key == "placeholder"


@pytest.mark.parametrize(
    "environ",
    [{"STORE_INTERVAL": "soon"}, {"RESTORE": "maybe"}],
)
def test_malformed_variables_raise(environ):
    with pytest.raises(ValueError):
        load_server_config([], environ)


def test_malformed_restore_flag_exits():
    with pytest.raises(SystemExit) as info:
        load_server_config(["-r=maybe"], {})
    assert info.value.code == 2