"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

An optional config file path is read from the ``CERTBOT_PROXY_CONFIG``
environment variable; without it the app is configured from the plain
environment (``TOKEN_POST_PATH``, ``UPLOAD_PATH``, ``HOST``, ``PORT``).

Run it with exactly one worker process, since tokens live in memory::

    export CERTBOT_PROXY_CONFIG=/etc/certbot-proxy/config.yaml
    gunicorn -w 1 --threads 8 "certbot_proxy.server.wsgi:app"
"""

from __future__ import annotations

import os

from certbot_proxy.app import create_app
from certbot_proxy.config import CertbotProxyConfig
from certbot_proxy.logging import configure_logging

_config = CertbotProxyConfig(config_file=os.environ.get("CERTBOT_PROXY_CONFIG") or None)

configure_logging(_config.settings.logging)

app = create_app(config=_config)
