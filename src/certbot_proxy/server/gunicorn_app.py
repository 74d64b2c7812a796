"""Programmatic gunicorn runner for certbot-proxy.

The token registry is plain process memory, so the whole service is
one gunicorn worker that scales with threads.  Anything that would
start a second worker, or recycle the only one, would lose pending
challenges between the certbot POST and the authority's probe.

Usage::

    from certbot_proxy.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flask import Flask

    from certbot_proxy.config.settings import ServerSettings

log = logging.getLogger(__name__)

PROC_NAME = "certbot-proxy"
REGISTRY_WORKERS = 1


def gunicorn_options(settings: ServerSettings) -> dict[str, Any]:
    """Map :class:`ServerSettings` onto gunicorn setting names."""
    if settings.workers != REGISTRY_WORKERS:
        log.warning(
            "server.workers=%d ignored: tokens live in one process, running %d worker",
            settings.workers,
            REGISTRY_WORKERS,
        )
    return {
        "bind": f"{settings.bind}:{settings.port}",
        "workers": REGISTRY_WORKERS,
        "threads": settings.threads,
        "worker_class": settings.worker_class,
        "timeout": settings.timeout,
        "graceful_timeout": settings.graceful_timeout,
        "keepalive": settings.keepalive,
        "proc_name": PROC_NAME,
        # certbot_proxy.access already logs every request
        "accesslog": None,
    }


def run_gunicorn(app: Flask, settings: ServerSettings) -> None:
    """Serve *app* with gunicorn until the master process exits.

    Raises :class:`RuntimeError` when gunicorn is unavailable.
    """
    try:
        from gunicorn.app.base import BaseApplication
    except ImportError:
        msg = (
            "gunicorn is not installed; certbot-proxy needs the server extra:\n"
            "    pip install 'certbot-proxy[server]'\n\n"
            "gunicorn only runs on Unix.  Elsewhere start with --dev to use "
            "the Flask development server."
        )
        raise RuntimeError(msg) from None

    options = gunicorn_options(settings)

    class _ProxyServer(BaseApplication):
        def __init__(self, flask_app: Flask) -> None:
            self.application = flask_app
            super().__init__()

        def load_config(self) -> None:
            for key, value in options.items():
                self.cfg.set(key, value)

        def load(self) -> Flask:
            return self.application

    log.info(
        "Serving challenges on %s with %d threads (%s)",
        options["bind"],
        settings.threads,
        settings.worker_class,
    )
    _ProxyServer(app).run()
