"""Logging subsystem for certbot-proxy.

Public API::

    from certbot_proxy.logging import configure_logging

    configure_logging(settings.logging)
"""

from certbot_proxy.logging.setup import configure_logging

__all__ = ["configure_logging"]
