"""Application logger configuration."""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s"


class _ConsoleHandler(logging.StreamHandler):
    """Marker handler so repeated setup does not stack handlers."""


def new_logger(name: str = "metricsd") -> logging.Logger:
    """Return a development logger writing debug-level records to stderr."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if not any(isinstance(h, _ConsoleHandler) for h in logger.handlers):
        handler = _ConsoleHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger