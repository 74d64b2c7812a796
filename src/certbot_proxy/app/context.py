"""Dependency injection container for certbot-proxy.

Created once per application by :func:`certbot_proxy.app.create_app`
and stored on the Flask app via ``app.extensions["container"]``.
Accessible from any request context with :func:`get_container`.

Usage::

    from certbot_proxy.app.context import get_container

    record = get_container().registry.match(host, token)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app

from certbot_proxy.core.registry import TokenRegistry
from certbot_proxy.services.upload import UploadService

if TYPE_CHECKING:
    from certbot_proxy.config.settings import CertbotProxySettings


class Container:
    """Per-application dependencies.

    Each app owns its own registry, so separately created apps (tests,
    embedded use) never share tokens.
    """

    def __init__(
        self,
        settings: CertbotProxySettings,
        registry: TokenRegistry | None = None,
        upload_service: UploadService | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or TokenRegistry.from_settings(settings.registry)
        self.uploads = upload_service or UploadService(settings.upload)

    def __repr__(self) -> str:
        return f"<Container registry={self.registry!r} uploads={self.uploads.base_path}>"


def get_container() -> Container:
    """Return the :class:`Container` of the current Flask app."""
    try:
        return current_app.extensions["container"]
    except KeyError:
        msg = "Container not initialised; build the app with create_app()"
        raise RuntimeError(msg) from None
