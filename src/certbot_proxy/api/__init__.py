"""HTTP API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup to wire
the challenge responder, the token admin API and the upload endpoint
into the Flask app.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    """Register all blueprints on the Flask application.

    Reads ``admin.path`` from the app's settings to mount the token
    admin API and, below it, the upload endpoint.
    """
    settings = app.config["CERTBOT_PROXY_SETTINGS"]
    admin_prefix = settings.admin.path.rstrip("/")

    from certbot_proxy.api.challenge import challenge_bp  # noqa: PLC0415
    from certbot_proxy.api.tokens import tokens_bp  # noqa: PLC0415
    from certbot_proxy.api.upload import upload_bp  # noqa: PLC0415

    # Challenge responder: fixed well-known path
    app.register_blueprint(challenge_bp)

    # Token admin API: {admin_path}
    app.register_blueprint(tokens_bp, url_prefix=admin_prefix)

    # Upload: {admin_path}upload
    app.register_blueprint(upload_bp, url_prefix=admin_prefix)

    log.info(
        "Registered blueprints: token post path %s, upload path %s (%d URL rules)",
        settings.admin.path,
        settings.admin.upload_path,
        len(list(app.url_map.iter_rules())),
    )
