"""Token admin API.

``POST {admin_path}``   registers ``{"domain", "token", "validation"}``
``DELETE {admin_path}`` forgets ``{"domain"}``

The body is decoded before the method is inspected, so any request
without a valid JSON object is a 400 regardless of method.  Results
are communicated by status code only:

* 200 stored / deleted
* 400 bad or oversized JSON, or an empty field
* 405 any other method
* 507 the registry was already full (written under the advisory
  policy, refused under the strict one)
"""

from __future__ import annotations

import json
import logging

from flask import Blueprint, Response, current_app, request
from werkzeug.exceptions import RequestEntityTooLarge

from certbot_proxy.api.challenge import ALL_METHODS
from certbot_proxy.app.context import get_container
from certbot_proxy.app.errors import (
    BadJsonRequest,
    MalformedRequest,
    MethodNotAllowed,
    PayloadTooLarge,
)
from certbot_proxy.app.middleware import client_address
from certbot_proxy.core.types import SetOutcome
from certbot_proxy.logging import security_events
from certbot_proxy.models.challenge import ChallengeRecord

log = logging.getLogger(__name__)

INSUFFICIENT_STORAGE = 507

tokens_bp = Blueprint("tokens", __name__)


def _decode_record() -> ChallengeRecord:
    try:
        raw = request.get_data()
    except RequestEntityTooLarge:
        msg = f"Token request body over {current_app.config['MAX_CONTENT_LENGTH']} bytes"
        raise PayloadTooLarge(msg, body=BadJsonRequest.default_body) from None
    if not raw:
        msg = "Token request without body"
        raise BadJsonRequest(msg)
    try:
        return ChallengeRecord.from_json(json.loads(raw))
    except (ValueError, RecursionError) as exc:
        msg = f"Bad json request: {exc}"
        raise BadJsonRequest(msg) from None


@tokens_bp.route("/", methods=ALL_METHODS, provide_automatic_options=False)
def manage_token() -> Response:
    """Set or delete the pending challenge for a domain."""
    record = _decode_record()
    ip = client_address()
    registry = get_container().registry

    if request.method == "POST":
        if not record.is_complete():
            msg = f"Incomplete token for {record.domain!r} from {ip}"
            raise MalformedRequest(msg)

        log.info("Set token for %s from %s", record.domain, ip)
        outcome = registry.set(record)
        if outcome is SetOutcome.STORED:
            return Response(status=200)

        security_events.token_limit_reached(
            registry.max_tokens,
            record.domain,
            ip,
            rejected=outcome is SetOutcome.REJECTED,
        )
        return Response(status=INSUFFICIENT_STORAGE)

    if request.method == "DELETE":
        log.info("Delete token for %s from %s", record.domain, ip)
        registry.delete(record.domain)
        return Response(status=200)

    msg = f"{request.method} method not allowed from {ip}"
    raise MethodNotAllowed(msg)
