"""Assembly and start-up of the metrics server."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Sequence

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.serving import run_simple

from metricsd.logsetup import new_logger
from metricsd.server.config import ServerConfig, load_server_config
from metricsd.server.router import create_app
from metricsd.storage.jsonfile import FileStorage
from metricsd.storage.memory import MemStorage
from metricsd.storage.migrations import APP_SERVER, run_migrations
from metricsd.storage.postgres import PostgresStorage

_LOG = logging.getLogger(__name__)


def _noop() -> None:
    return None


def create_store(
    config: ServerConfig,
    engine: Engine | None,
    logger: logging.Logger | None = None,
) -> tuple[Any, Callable[[], None]]:
    """Choose the storage described by ``config``.

    Returns the store and a function releasing its resources. A database
    takes precedence over a file, a file over plain memory. Raises
    RuntimeError when the store cannot be created.
    """
    log = logger or _LOG
    if config.database_dsn:
        if engine is None:
            raise RuntimeError("error during db migration: no database engine")
        store = PostgresStorage(engine)
        try:
            run_migrations(engine, APP_SERVER)
        except (SQLAlchemyError, OSError, ValueError) as exc:
            raise RuntimeError(f"error during db migration: {exc}") from exc
        return store, _noop

    if config.file_storage_path:
        try:
            file_store = FileStorage(
                config.file_storage_path, config.store_interval, config.restore, log
            )
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"error creating file storage: {exc}") from exc
        return file_store, file_store.close

    return MemStorage(), _noop


def _engine_url(dsn: str) -> str:
    if dsn.startswith("postgres://"):
        return "postgresql://" + dsn[len("postgres://"):]
    return dsn


def _pinger(engine: Engine | None) -> Callable[[], None] | None:
    if engine is None:
        return None

    def ping() -> None:
        with engine.connect():
            pass

    return ping


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port") from None
    host = host.strip("[]")
    return host or "0.0.0.0", port_number


def main(argv: Sequence[str] | None = None) -> int:
    """Start the metrics server; returns the process exit status."""
    try:
        config = load_server_config(argv)
    except ValueError as exc:
        print(f"error creating config: {exc}", file=sys.stderr)
        return 1

    logger = new_logger()

    engine: Engine | None = None
    if config.database_dsn:
        try:
            engine = create_engine(_engine_url(config.database_dsn))
        except (SQLAlchemyError, ImportError) as exc:
            logger.error("error creating db: %s", exc)
            return 1

    try:
        store, close_store = create_store(config, engine, logger)
    except RuntimeError as exc:
        logger.error("error creating store: %s", exc)
        if engine is not None:
            engine.dispose()
        return 1

    try:
        host, port = _split_address(config.server_address)
        app = create_app(store, _pinger(engine), config.key, logger)
        logger.info("running server on %s", config.server_address)
        run_simple(host, port, app, threaded=True)
    except (ValueError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    finally:
        close_store()
        if engine is not None:
            engine.dispose()
    return 0