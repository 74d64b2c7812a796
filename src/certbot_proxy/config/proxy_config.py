"""certbot-proxy configuration loader.

Sources, lowest to highest precedence::

    built-in defaults  (config/settings.py builders)
    config file        (optional YAML or JSON, ``${VAR:-default}`` aware)
    environment        (TOKEN_POST_PATH, UPLOAD_PATH, PORT, HOST, LOG_LEVEL)
    CLI overrides      (dot-path mapping passed by the entry point)

Lifecycle::

    config = CertbotProxyConfig(
        config_file="/etc/certbot-proxy/config.yaml",
        overrides={"server.port": 8080},
    )
    config.settings.server.port     # typed access
    config.get("upload.path")       # dynamic dot-path

The resulting object is handed to :func:`certbot_proxy.app.create_app`;
there is no module-level singleton.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from certbot_proxy.config.settings import CertbotProxySettings, build_settings
from certbot_proxy.core.types import CapacityPolicy

if TYPE_CHECKING:
    from collections.abc import Mapping

CHALLENGE_PREFIX = "/.well-known/acme-challenge/"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

# Plain environment variables understood without a config file.
ENV_OVERRIDES: dict[str, str] = {
    "TOKEN_POST_PATH": "admin.path",
    "UPLOAD_PATH": "upload.path",
    "PORT": "server.port",
    "HOST": "server.bind",
    "LOG_LEVEL": "logging.level",
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_LOG_FORMATS = frozenset({"text", "json"})
_MAX_PORT = 65535
_WILDCARD_BINDS = frozenset({"0.0.0.0", "::", ""})  # noqa: S104

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str, environ: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    environ: Mapping[str, str],
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path, environ)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], environ, child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path, environ)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, environ, child_path)


# ---------------------------------------------------------------------------
# Dot-path helpers
# ---------------------------------------------------------------------------


def _set_path(data: dict, dotted: str, value: Any) -> None:  # noqa: ANN401
    *parents, leaf = dotted.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[leaf] = value


def _apply_overrides(data: dict, overrides: Mapping[str, Any]) -> None:
    """Merge dot-path *overrides* into *data*, skipping ``None``/empty values."""
    for dotted, value in overrides.items():
        if value is None or value == "":
            continue
        _set_path(data, dotted, value)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    return {path: environ[var] for var, path in ENV_OVERRIDES.items() if environ.get(var)}


def _load_file(config_file: str | Path) -> dict:
    path = Path(config_file)
    with path.open(encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"top level of {path} must be a mapping"
        raise ConfigValidationError([msg])
    data["_source"] = str(path)
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class CertbotProxyConfig:
    """Central configuration for the certbot-proxy server.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the merged raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path | None = None,
        overrides: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Load, merge and validate the configuration.

        Parameters
        ----------
        config_file:
            Optional path to a YAML/JSON configuration file.
        overrides:
            Dot-path mapping (``{"server.port": 8080}``) applied last,
            typically from command-line flags.  ``None`` values are
            ignored so unset flags fall through.
        environ:
            Environment mapping; defaults to :data:`os.environ`.

        """
        self._environ = os.environ if environ is None else environ
        self._data: dict = _load_file(config_file) if config_file is not None else {}

        _resolve_env_vars(self._data, self._environ)
        _apply_overrides(self._data, _env_overrides(self._environ))
        _apply_overrides(self._data, overrides or {})

        self.additional_checks()
        self._settings: CertbotProxySettings = build_settings(self._data)

    # -- access -------------------------------------------------------------

    @property
    def data(self) -> dict:
        """Merged raw configuration (a copy)."""
        return copy.deepcopy(self._data)

    @property
    def settings(self) -> CertbotProxySettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def get(self, dotted: str, default: Any = None) -> Any:  # noqa: ANN401
        """Look up a raw value by dot-path, e.g. ``get("server.port")``."""
        node: Any = self._data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- validation ---------------------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation of the merged raw data.

        Collects every problem and raises a single
        :class:`ConfigValidationError`.  Non-fatal findings are logged
        as warnings.
        """
        errors: list[str] = []
        warnings: list[str] = []

        server = self._section("server", errors)
        admin = self._section("admin", errors)
        registry = self._section("registry", errors)
        upload = self._section("upload", errors)
        logging_cfg = self._section("logging", errors)

        # -- server --
        port = _as_int(server, "server.port", "port", 4080, errors)
        if port is not None and not 1 <= port <= _MAX_PORT:
            errors.append(f"server.port ({port}) must be between 1 and {_MAX_PORT}")
        workers = _as_int(server, "server.workers", "workers", 1, errors)
        if workers is not None and workers != 1:
            errors.append(
                f"server.workers ({workers}) must be 1: the token registry "
                "lives in process memory and challenges answered by another "
                "worker would not find the token. Scale with server.threads.",
            )
        threads = _as_int(server, "server.threads", "threads", 8, errors)
        if threads is not None and threads < 1:
            errors.append(f"server.threads ({threads}) must be >= 1")
        for key, default in (("timeout", 30), ("graceful_timeout", 30), ("keepalive", 2)):
            _as_int(server, f"server.{key}", key, default, errors)
        if str(server.get("bind", "localhost")) in _WILDCARD_BINDS:
            warnings.append(
                "server.bind listens on all interfaces; the admin API has no "
                "authentication and relies on network placement",
            )

        # -- admin --
        admin_path = admin.get("path", "/token_poster/")
        if not isinstance(admin_path, str) or not admin_path.startswith("/"):
            errors.append(f"admin.path must start with '/' (got {admin_path!r})")
        elif not admin_path.endswith("/"):
            errors.append(f"admin.path must end with '/' (got {admin_path!r})")
        elif admin_path.startswith(CHALLENGE_PREFIX):
            errors.append(
                f"admin.path ({admin_path!r}) must not live under {CHALLENGE_PREFIX!r}",
            )

        # -- registry --
        max_tokens = _as_int(registry, "registry.max_tokens", "max_tokens", 10000, errors)
        if max_tokens is not None and max_tokens < 1:
            errors.append(f"registry.max_tokens ({max_tokens}) must be >= 1")
        policy = registry.get("capacity_policy", CapacityPolicy.ADVISORY.value)
        known_policies = sorted(p.value for p in CapacityPolicy)
        if policy not in known_policies:
            errors.append(
                f"registry.capacity_policy must be one of {known_policies} (got {policy!r})",
            )

        # -- upload --
        max_file = _as_int(upload, "upload.max_file_bytes", "max_file_bytes", 1024 * 1014, errors)
        max_request = _as_int(
            upload, "upload.max_request_bytes", "max_request_bytes", 10 << 20, errors
        )
        if max_file is not None and max_file < 1:
            errors.append(f"upload.max_file_bytes ({max_file}) must be > 0")
        if max_request is not None and max_request < 1:
            errors.append(f"upload.max_request_bytes ({max_request}) must be > 0")
        if max_file is not None and max_request is not None and max_file > max_request:
            errors.append(
                f"upload.max_file_bytes ({max_file}) must be <= "
                f"upload.max_request_bytes ({max_request})",
            )
        upload_path = upload.get("path")
        if upload_path is not None and not isinstance(upload_path, str):
            errors.append("upload.path must be a string")

        # -- logging --
        level = str(logging_cfg.get("level", "INFO")).upper()
        if level not in _LOG_LEVELS:
            errors.append(
                f"logging.level must be one of {sorted(_LOG_LEVELS)} "
                f"(got {logging_cfg.get('level')!r})",
            )
        fmt = logging_cfg.get("format", "text")
        if fmt not in _LOG_FORMATS:
            errors.append(f"logging.format must be one of {sorted(_LOG_FORMATS)} (got {fmt!r})")

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    def _section(self, name: str, errors: list[str]) -> dict:
        section = self._data.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            errors.append(f"{name} must be a mapping")
            return {}
        return section

    def __repr__(self) -> str:
        source = self._data.get("_source", "<defaults>")
        return f"<CertbotProxyConfig config_file={source}>"


def _as_int(
    section: dict,
    path: str,
    key: str,
    default: int,
    errors: list[str],
) -> int | None:
    """Coerce ``section[key]`` to int, recording an error on failure."""
    value = section.get(key, default)
    if isinstance(value, bool):
        errors.append(f"{path} must be an integer (got {value!r})")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{path} must be an integer (got {value!r})")
        return None
