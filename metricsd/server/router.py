"""URL routing of the metrics server and assembly of the WSGI application."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request

from metricsd.server.handlers import (
    Handler,
    UpdateAPI,
    list_handler,
    ping_handler,
    read_handler,
    read_json_handler,
)
from metricsd.server.middleware import (
    WSGIApp,
    compressor,
    content_type,
    hash_signature,
    request_logger,
)

_LOG = logging.getLogger(__name__)


class Router:
    """WSGI application dispatching requests to the metrics handlers."""

    def __init__(
        self,
        store: Any,
        pinger: Callable[[], object] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        log = logger or _LOG
        updates = UpdateAPI(store, log)
        self._handlers: dict[str, tuple[Handler, bool]] = {
            "list": (list_handler(store, log), False),
            "read": (read_handler(store, log), False),
            "read_json": (read_json_handler(store), True),
            "update_plain": (updates.handle_plain, False),
            "update_json": (updates.handle_json, True),
            "update_batch": (updates.handle_json_batch, True),
            "ping": (ping_handler(pinger), False),
        }
        self._require_json = content_type("application/json")
        self._url_map = Map(
            [
                Rule("/", methods=["GET"], endpoint="list"),
                Rule("/value/<type>/<name>", methods=["GET"], endpoint="read"),
                Rule("/value/", methods=["POST"], endpoint="read_json"),
                Rule("/update/<type>/<name>/<value>", methods=["POST"], endpoint="update_plain"),
                Rule("/update/", methods=["POST"], endpoint="update_json"),
                Rule("/updates/", methods=["POST"], endpoint="update_batch"),
                Rule("/ping", methods=["GET"], endpoint="ping"),
            ],
            strict_slashes=False,
            merge_slashes=False,
        )

    def __call__(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        adapter = self._url_map.bind_to_environ(environ)
        try:
            endpoint, values = adapter.match()
        except HTTPException as exc:
            return exc(environ, start_response)

        handler, json_only = self._handlers[endpoint]

        def app(env: dict, respond: Callable[..., Any]) -> Iterable[bytes]:
            return handler(Request(env), **values)(env, respond)

        if json_only:
            app = self._require_json(app)
        return app(environ, start_response)


def create_app(
    store: Any,
    pinger: Callable[[], object] | None = None,
    hash_key: str = "",
    logger: logging.Logger | None = None,
) -> WSGIApp:
    """Build the server application with logging, signing and compression."""
    log = logger or _LOG
    app: WSGIApp = compressor(log)(Router(store, pinger, log))
    if hash_key:
        app = hash_signature(hash_key, log)(app)
    return request_logger(log)(app)