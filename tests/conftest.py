"""Root conftest for the certbot-proxy test suite."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

ADMIN_PATH = "/token_poster/"
UPLOAD_PATH = ADMIN_PATH + "upload"
CHALLENGE_PREFIX = "/.well-known/acme-challenge/"

_ENV_VARS = ("TOKEN_POST_PATH", "UPLOAD_PATH", "PORT", "HOST", "LOG_LEVEL", "CERTBOT_PROXY_CONFIG")


# ---------------------------------------------------------------------------
# Isolation: environment and logger state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host's HOST/PORT/... variables out of every test."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo ``configure_logging`` so caplog keeps seeing our records."""
    yield
    root = logging.getLogger("certbot_proxy")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "upload"


@pytest.fixture()
def make_config(upload_dir: Path):
    """Factory building a config from dot-path overrides, no file, no env."""
    from certbot_proxy.config import CertbotProxyConfig

    def _make(overrides: dict | None = None):
        merged = {"upload.path": str(upload_dir)}
        merged.update(overrides or {})
        return CertbotProxyConfig(overrides=merged, environ={})

    return _make


@pytest.fixture()
def make_app(make_config):
    """Factory building a fresh app (and registry) per call."""
    from certbot_proxy.app import create_app

    def _make(overrides: dict | None = None):
        app = create_app(config=make_config(overrides))
        app.config["TESTING"] = True
        return app

    return _make


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def registry(app):
    return app.extensions["container"].registry


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def send_token(client):
    """Send a payload (dict, or raw str/bytes) to the token admin API."""

    def _send(method: str, payload, path: str = ADMIN_PATH):
        data = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        return client.open(
            path,
            method=method,
            data=data,
            content_type="application/json",
            headers={"X-Forwarded-For": "192.168.1.1"},
        )

    return _send


@pytest.fixture()
def probe(client):
    """Perform the certificate authority's well-known request."""

    def _probe(domain: str, token: str, method: str = "GET"):
        return client.open(
            CHALLENGE_PREFIX + token,
            method=method,
            base_url=f"http://{domain}",
        )

    return _probe
