"""Server configuration from command-line flags and environment variables."""

from __future__ import annotations

import argparse
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Sequence

SERVER_ADDRESS_DEFAULT = "localhost:8080"
STORE_INTERVAL_SECONDS_DEFAULT = 300
FILE_STORAGE_PATH_DEFAULT = "db.json"
RESTORE_DEFAULT = True

_INT_RE = re.compile(r"[+-]?\d+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass(frozen=True)
class ServerConfig:
    """Settings of the metrics server."""

    server_address: str = SERVER_ADDRESS_DEFAULT
    store_interval: timedelta = timedelta(seconds=STORE_INTERVAL_SECONDS_DEFAULT)
    file_storage_path: str = FILE_STORAGE_PATH_DEFAULT
    restore: bool = RESTORE_DEFAULT
    database_dsn: str = ""
    key: str = ""


def _parse_bool(raw: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def _flag_bool(raw: str) -> bool:
    try:
        return _parse_bool(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _parse_int(name: str, raw: str) -> int:
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"env: parse error on field {name!r}: invalid integer {raw!r}")
    return int(raw)


def load_server_config(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> ServerConfig:
    """Build the server configuration.

    Flags are parsed first; any non-empty environment variable then overrides
    the corresponding value. Raises ValueError for malformed variables.
    """
    env = os.environ if environ is None else environ

    parser = argparse.ArgumentParser(prog="server", allow_abbrev=False)
    parser.add_argument("-a", dest="server_address", default=SERVER_ADDRESS_DEFAULT,
                        help="server address")
    parser.add_argument("-i", dest="store_interval", type=int,
                        default=STORE_INTERVAL_SECONDS_DEFAULT, help="store interval")
    parser.add_argument("-f", "-db.json", dest="file_storage_path",
                        default=FILE_STORAGE_PATH_DEFAULT, help="file storage path")
    parser.add_argument("-r", dest="restore", type=_flag_bool, nargs="?", const=True,
                        default=RESTORE_DEFAULT, help="restore")
    parser.add_argument("-d", dest="database_dsn", default="", help="database DSN")
    parser.add_argument("-k", dest="key", default="", help="hash key")
    args = parser.parse_args(argv)

    store_interval = args.store_interval
    restore = args.restore
    if env.get("STORE_INTERVAL"):
        store_interval = _parse_int("STORE_INTERVAL", env["STORE_INTERVAL"])
    if env.get("RESTORE"):
        try:
            restore = _parse_bool(env["RESTORE"])
        except ValueError as exc:
            raise ValueError(f"env: parse error on field 'RESTORE': {exc}") from None

    return ServerConfig(
        server_address=env.get("ADDRESS") or args.server_address,
        store_interval=timedelta(seconds=store_interval),
        file_storage_path=env.get("FILE_STORAGE_PATH") or args.file_storage_path,
        restore=restore,
        database_dsn=env.get("DATABASE_DSN") or args.database_dsn,
        key=env.get("KEY") or args.key,
    )