"""WSGI middleware of the metrics server.

Request logging, Content-Type checking, gzip compression and HMAC-SHA256
signing and verification of bodies.
"""

from __future__ import annotations

import base64
import gzip
import hashlib
import hmac
import io
import logging
import time
import zlib
from typing import Any, Callable, Iterable
from urllib.parse import quote

from werkzeug.datastructures import EnvironHeaders
from werkzeug.wrappers import Response
from werkzeug.wsgi import get_input_stream

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]
Middleware = Callable[[WSGIApp], WSGIApp]

HEADER_HASH_SHA256 = "HashSHA256"

_COMPRESSIBLE_TYPES = frozenset({"text/html", "application/json"})
_LOG = logging.getLogger(__name__)


def _read_body(environ: dict) -> bytes:
    return get_input_stream(environ).read()


def _with_body(environ: dict, body: bytes) -> dict:
    updated = dict(environ)
    updated["wsgi.input"] = io.BytesIO(body)
    updated["CONTENT_LENGTH"] = str(len(body))
    return updated


def _plain_error(message: str, status: int) -> Response:
    return Response(message + "\n", status=status, mimetype="text/plain")


def _sign(key: str, data: bytes) -> str:
    digest = hmac.new(key.encode("utf-8"), data, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def compressor(logger: logging.Logger | None = None) -> Middleware:
    """Gzip responses for clients that accept it and unpack gzip request bodies.

    A response is compressed only when ``Accept-Encoding`` mentions gzip and
    ``Accept`` is one of the supported content types.
    """
    log = logger or _LOG

    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            headers = EnvironHeaders(environ)
            compress = (
                "gzip" in headers.get("Accept-Encoding", "")
                and headers.get("Accept", "") in _COMPRESSIBLE_TYPES
            )

            if "gzip" in headers.get("Content-Encoding", ""):
                try:
                    raw = _read_body(environ)
                    if not raw:
                        raise EOFError("empty gzip body")
                    body = gzip.decompress(raw)
                except (OSError, EOFError, zlib.error) as exc:
                    log.error("%s", exc)
                    error = _plain_error("failed to decompress request body", 500)
                    return error(environ, start_response)
                environ = _with_body(environ, body)

            if not compress:
                return app(environ, start_response)

            response = Response.from_app(app, environ, buffered=True)
            response.set_data(gzip.compress(response.get_data()))
            response.headers["Content-Encoding"] = "gzip"
            return response(environ, start_response)

        return wrapped

    return middleware


def content_type(*allowed: str) -> Middleware:
    """Reject requests whose Content-Type is not listed with 415."""
    allowed_types = frozenset(t.lower() for t in allowed)

    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            request_type = EnvironHeaders(environ).get("Content-Type", "").lower()
            if request_type not in allowed_types:
                return Response(status=415)(environ, start_response)
            return app(environ, start_response)

        return wrapped

    return middleware


def hash_signature(hash_key: str, logger: logging.Logger | None = None) -> Middleware:
    """Verify the request body signature when present and sign the response.

    A request carrying a ``HashSHA256`` header that does not match the
    HMAC-SHA256 of its body is answered with 400. Non-empty responses get
    the header with the signature of their body.
    """
    log = logger or _LOG

    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            received = EnvironHeaders(environ).get(HEADER_HASH_SHA256, "")
            if received:
                try:
                    body = _read_body(environ)
                except OSError as exc:
                    log.error("%s", exc)
                    error = _plain_error("failed to read request body", 500)
                    return error(environ, start_response)
                if not hmac.compare_digest(received, _sign(hash_key, body)):
                    message = f"invalid {HEADER_HASH_SHA256} header value"
                    log.error(message)
                    return _plain_error(message, 400)(environ, start_response)
                environ = _with_body(environ, body)

            response = Response.from_app(app, environ, buffered=True)
            data = response.get_data()
            if data:
                response.headers[HEADER_HASH_SHA256] = _sign(hash_key, data)
            return response(environ, start_response)

        return wrapped

    return middleware


def _request_uri(environ: dict) -> str:
    uri = environ.get("REQUEST_URI") or environ.get("RAW_URI")
    if uri:
        return uri
    path = quote(environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""))
    query = environ.get("QUERY_STRING", "")
    return f"{path}?{query}" if query else path


def request_logger(logger: logging.Logger | None = None) -> Middleware:
    """Log URI, method, status, duration and response size of every request."""
    log = logger or _LOG

    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            start = time.perf_counter()
            response = Response.from_app(app, environ, buffered=True)
            duration = time.perf_counter() - start
            log.info(
                "uri %s method %s status %d duration %.6fs size %d",
                _request_uri(environ),
                environ.get("REQUEST_METHOD", ""),
                response.status_code,
                duration,
                len(response.get_data()),
            )
            return response(environ, start_response)

        return wrapped

    return middleware