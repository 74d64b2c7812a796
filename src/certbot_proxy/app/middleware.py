"""Flask request lifecycle hooks for certbot-proxy.

Registered via :func:`register_request_hooks`:

* Request ID generation / passthrough (``X-Request-ID``)
* Caller address resolution (forwarded-for header, else peer address)
* Request timing
* Access logging
"""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from flask import Flask, current_app, g, request

log = logging.getLogger(__name__)
access_log = logging.getLogger("certbot_proxy.access")

DEFAULT_FORWARDED_FOR = "X-Forwarded-For"


def client_address() -> str:
    """Return the caller address for log lines.

    The configured forwarded-for header wins when present (the service
    sits behind a shared proxy); otherwise the transport peer address.
    """
    cached = getattr(g, "client_ip", None)
    if cached:
        return cached
    header = DEFAULT_FORWARDED_FOR
    settings = current_app.config.get("CERTBOT_PROXY_SETTINGS")
    if settings is not None:
        header = settings.forwarding.forwarded_for_header
    forwarded = request.headers.get(header, "")
    if forwarded:
        return forwarded
    return request.remote_addr or "-"


def request_host() -> str:
    """Return the request authority without its ``:port`` suffix.

    IPv6 literals (``[::1]:80``) keep their brackets.  Forwarded
    scheme or host headers are not consulted.
    """
    host = request.host
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    name, sep, port = host.rpartition(":")
    if sep and port.isdigit():
        return name
    return host


def register_request_hooks(app: Flask) -> None:
    """Register before/after request hooks for ID tracking, timing, and
    access logging.
    """

    @app.before_request
    def _before_request() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g.start_time = time.monotonic()
        g.client_ip = client_address()

    @app.after_request
    def _after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"

        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id

        status = response.status_code
        duration_ms = _elapsed_ms()
        level = (
            logging.WARNING
            if 400 <= status < 500 and status != 404
            else logging.ERROR
            if status >= 500
            else logging.INFO
        )
        access_log.log(
            level,
            "%s %s %s %.1fms",
            request.method,
            request.path,
            status,
            duration_ms,
            extra={
                "status": status,
                "duration_ms": round(duration_ms, 1),
                "content_length": response.content_length,
            },
        )

        return response


def _elapsed_ms() -> float:
    start = getattr(g, "start_time", None)
    if start is None:
        return 0.0
    return (time.monotonic() - start) * 1000
