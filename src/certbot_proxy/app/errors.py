"""Request-scoped errors and their HTTP rendering.

Every endpoint of this service communicates results through the status
code alone; the only bodies ever produced are the short plain-text
messages of :class:`BadJsonRequest`, :class:`MethodNotAllowed` and
:class:`PayloadTooLarge`.

Taxonomy:

* malformed input      → 400, logged at INFO
* resource exhaustion  → 400/507, logged at WARNING (possible abuse)
* environment failure  → 500, logged at ERROR with the cause

Usage::

    raise MalformedRequest("Upload: domain should be given once")
"""

from __future__ import annotations

import logging

from flask import Flask, Response
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ProxyError(Exception):
    """Base class for errors that terminate a single request.

    Parameters
    ----------
    detail:
        Operator-facing explanation, written to the log only.
    status:
        HTTP status code of the response.
    body:
        Optional client-facing body; empty by default.

    """

    status: int = 500
    log_level: int = logging.ERROR
    default_body: str = ""

    def __init__(
        self,
        detail: str,
        status: int | None = None,
        *,
        body: str | None = None,
    ) -> None:
        self.detail = detail
        if status is not None:
            self.status = status
        self.body = self.default_body if body is None else body
        super().__init__(detail)

    def to_response(self) -> Response:
        """Build a Flask :class:`~flask.Response`."""
        body = f"{self.body}\n" if self.body else ""
        return Response(body, status=self.status, content_type=TEXT_CONTENT_TYPE)


class MalformedRequest(ProxyError):
    status = 400
    log_level = logging.INFO


class BadJsonRequest(MalformedRequest):
    default_body = "Bad json request"


class PayloadTooLarge(ProxyError):
    status = 400
    log_level = logging.WARNING


class PathEscape(ProxyError):
    status = 400
    log_level = logging.WARNING


class MethodNotAllowed(ProxyError):
    status = 405
    log_level = logging.INFO
    default_body = "Method not allowed"


class StorageFailure(ProxyError):
    """The filesystem refused a directory creation or write."""

    status = 500
    log_level = logging.ERROR


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that render every error as a status-only response."""

    @app.errorhandler(ProxyError)
    def _handle_proxy_error(exc: ProxyError) -> Response:
        log.log(
            exc.log_level,
            "%s",
            exc.detail,
            exc_info=exc if exc.__cause__ is not None else None,
        )
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException) -> Response:
        return Response(status=exc.code or 500)

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception) -> Response:
        # HTTPException subclasses are already caught above; this
        # handler covers everything else (genuine 500s).
        log.exception("Unhandled exception during request")
        return Response(status=500)
