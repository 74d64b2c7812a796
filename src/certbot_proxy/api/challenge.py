"""ACME http-01 challenge responder (RFC 8555 §8.3).

``GET /.well-known/acme-challenge/{token}`` with ``Host: {domain}``
returns the registered validation string verbatim.  An unknown domain
and a token mismatch are indistinguishable (both 404).
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, request

from certbot_proxy.app.context import get_container
from certbot_proxy.app.errors import TEXT_CONTENT_TYPE
from certbot_proxy.app.middleware import client_address, request_host

log = logging.getLogger(__name__)

CHALLENGE_PREFIX = "/.well-known/acme-challenge/"

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

challenge_bp = Blueprint("challenge", __name__)


@challenge_bp.route(
    CHALLENGE_PREFIX,
    defaults={"token": ""},
    methods=ALL_METHODS,
    provide_automatic_options=False,
)
@challenge_bp.route(
    CHALLENGE_PREFIX + "<path:token>",
    methods=ALL_METHODS,
    provide_automatic_options=False,
)
def respond(token: str) -> Response:
    """Answer a certificate authority's http-01 probe."""
    if request.method != "GET":
        return Response(status=405)

    host = request_host()
    ip = client_address()
    log.info("Request token for %s from %s", host, ip)

    record = get_container().registry.match(host, token)
    if record is None:
        return Response(status=404)

    log.info("Return token for %s to %s", host, ip)
    return Response(record.validation, status=200, content_type=TEXT_CONTENT_TYPE)
