"""Flask application package for certbot-proxy.

Public API::

    from certbot_proxy.app import create_app
"""

from certbot_proxy.app.factory import create_app

__all__ = ["create_app"]
