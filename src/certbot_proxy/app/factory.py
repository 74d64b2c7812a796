"""Flask application factory for certbot-proxy.

Usage::

    from certbot_proxy.app import create_app
    from certbot_proxy.config import CertbotProxyConfig

    app = create_app(config=CertbotProxyConfig(config_file="config.yaml"))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

    from certbot_proxy.config.proxy_config import CertbotProxyConfig
    from certbot_proxy.core.registry import TokenRegistry

log = logging.getLogger(__name__)


def create_app(
    config: CertbotProxyConfig | None = None,
    registry: TokenRegistry | None = None,
) -> Flask:
    """Create and configure the certbot-proxy Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`CertbotProxyConfig`.  When ``None`` a config is
        built from the environment alone (no file).
    registry:
        Token registry to serve from.  A fresh one sized from
        ``registry.*`` settings is created when ``None``.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if config is None:
        from certbot_proxy.config import CertbotProxyConfig  # noqa: PLC0415

        config = CertbotProxyConfig()

    settings = config.settings

    app = Flask("certbot_proxy")
    app.config["CERTBOT_PROXY_SETTINGS"] = settings
    app.config["CERTBOT_PROXY_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = settings.upload.max_request_bytes

    # -- Error handlers -----------------------------------------------------
    from certbot_proxy.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from certbot_proxy.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- Dependency container -----------------------------------------------
    from certbot_proxy.app.context import Container  # noqa: PLC0415

    container = Container(settings, registry=registry)
    app.extensions["container"] = container

    # -- Routes -------------------------------------------------------------
    from certbot_proxy.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    log.info("Upload file path %s", settings.upload.path)
    log.info("Token post path %s", settings.admin.path)
    log.info(
        "Token registry holds up to %d tokens (%s)",
        container.registry.max_tokens,
        container.registry.policy.value,
    )
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register the ``/livez`` probe."""
    from certbot_proxy import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        """Return minimal liveness probe."""
        return jsonify({"alive": True, "version": __version__}), 200
