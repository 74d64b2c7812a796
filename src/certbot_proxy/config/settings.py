"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
The loader in :mod:`certbot_proxy.config.proxy_config` only merges
file, environment and CLI data; these builders are what the
application actually reads.

Access pattern::

    config = CertbotProxyConfig(config_file="config.yaml")
    upload = config.settings.upload
    print(upload.path, upload.max_file_bytes)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP listener configuration (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    threads: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "localhost"),
        port=int(d.get("port", 4080)),
        workers=int(d.get("workers", 1)),
        threads=int(d.get("threads", 8)),
        worker_class=d.get("worker_class", "gthread"),
        timeout=int(d.get("timeout", 30)),
        graceful_timeout=int(d.get("graceful_timeout", 30)),
        keepalive=int(d.get("keepalive", 2)),
    )


# ---------------------------------------------------------------------------
# Forwarding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForwardingSettings:
    """Which header carries the caller address when behind a proxy."""

    forwarded_for_header: str


def _build_forwarding(data: dict | None) -> ForwardingSettings:
    d = data or {}
    return ForwardingSettings(
        forwarded_for_header=d.get("forwarded_for_header", "X-Forwarded-For"),
    )


# ---------------------------------------------------------------------------
# Admin API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdminSettings:
    """Mount point of the token admin API; uploads live at ``{path}upload``."""

    path: str

    @property
    def upload_path(self) -> str:
        return self.path + "upload"


def _build_admin(data: dict | None) -> AdminSettings:
    d = data or {}
    return AdminSettings(
        path=d.get("path", "/token_poster/"),
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistrySettings:
    """Token registry bound and what happens when it is reached."""

    max_tokens: int
    capacity_policy: str


def _build_registry(data: dict | None) -> RegistrySettings:
    d = data or {}
    return RegistrySettings(
        max_tokens=int(d.get("max_tokens", 10000)),
        capacity_policy=d.get("capacity_policy", "advisory"),
    )


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadSettings:
    """Per-domain artifact upload storage and limits."""

    path: Path
    max_file_bytes: int
    max_request_bytes: int


def _build_upload(data: dict | None) -> UploadSettings:
    d = data or {}
    raw_path = d.get("path") or "upload"
    return UploadSettings(
        path=Path(raw_path).expanduser().absolute(),
        max_file_bytes=int(d.get("max_file_bytes", 1024 * 1014)),
        max_request_bytes=int(d.get("max_request_bytes", 10 << 20)),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertbotProxySettings:
    server: ServerSettings
    forwarding: ForwardingSettings
    admin: AdminSettings
    registry: RegistrySettings
    upload: UploadSettings
    logging: LoggingSettings


def build_settings(data: dict) -> CertbotProxySettings:
    """Build the full typed settings tree from merged raw config data.

    Called once during :class:`CertbotProxyConfig` initialization after
    environment-variable resolution and override merging.
    """
    return CertbotProxySettings(
        server=_build_server(data.get("server")),
        forwarding=_build_forwarding(data.get("forwarding")),
        admin=_build_admin(data.get("admin")),
        registry=_build_registry(data.get("registry")),
        upload=_build_upload(data.get("upload")),
        logging=_build_logging(data.get("logging")),
    )
