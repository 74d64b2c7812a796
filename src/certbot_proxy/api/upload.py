"""Scoped file upload.

``POST {admin_path}upload`` takes a multipart form with exactly one
``domain`` field and one or more ``file`` parts.  Files are written to
``<upload base>/<domain>/<filename>`` in the order received; the first
failure aborts the batch and leaves earlier files on disk.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, request
from werkzeug.exceptions import RequestEntityTooLarge

from certbot_proxy.api.challenge import ALL_METHODS
from certbot_proxy.app.context import get_container
from certbot_proxy.app.errors import MalformedRequest, PayloadTooLarge
from certbot_proxy.app.middleware import client_address
from certbot_proxy.logging import security_events

log = logging.getLogger(__name__)

upload_bp = Blueprint("upload", __name__)


@upload_bp.route("/upload", methods=ALL_METHODS, provide_automatic_options=False)
def upload_files() -> Response:
    """Store uploaded artifacts under the domain's directory."""
    if request.method != "POST":
        return Response(status=405)

    ip = client_address()
    try:
        domains = request.form.getlist("domain")
        parts = request.files.getlist("file")
    except RequestEntityTooLarge:
        limit = current_app.config["MAX_CONTENT_LENGTH"]
        security_events.upload_too_large("<request>", request.content_length or 0, limit, ip)
        msg = f"Upload: request body too large from {ip}"
        raise PayloadTooLarge(msg, body="File upload too big") from None

    if len(domains) != 1:
        msg = "Upload: Domain should be given once, and only once"
        raise MalformedRequest(msg)
    domain = domains[0]

    uploads = get_container().uploads
    uploads.validate_domain(domain, ip)

    if not parts:
        msg = f"Upload: no file parts for {domain}"
        raise MalformedRequest(msg)

    for part in parts:
        uploads.store(domain, part, ip)

    return Response(status=200)
