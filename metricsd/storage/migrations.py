"""Applies SQL migration scripts to a database."""

from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy.engine import Engine

APP_SERVER = "server"

_DEFAULT_SCRIPTS_DIR = Path(__file__).with_name("sql")


def run_migrations(
    engine: Engine,
    app: str,
    scripts_dir: str | os.PathLike[str] | None = None,
) -> list[Path]:
    """Run every ``*.sql`` script of ``app`` in name order.

    Scripts are looked up in ``<scripts_dir>/<app>``; each runs in its own
    transaction. Returns the paths of the applied scripts. Raises ValueError
    for an unknown app; database errors propagate.
    """
    if app != APP_SERVER:
        raise ValueError(f"invalid app: {app}")

    base = Path(scripts_dir) if scripts_dir is not None else _DEFAULT_SCRIPTS_DIR
    scripts = sorted((base / app).glob("*.sql"), key=str)

    for script in scripts:
        content = script.read_text(encoding="utf-8")
        with engine.begin() as conn:
            conn.exec_driver_sql(content)

    return scripts