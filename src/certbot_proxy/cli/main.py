"""certbot-proxy command-line entry point.

Usage::

    certbot-proxy
    certbot-proxy --host 0.0.0.0 --port 4080 --upload-path /srv/certs
    certbot-proxy -c /etc/certbot-proxy/config.yaml
    certbot-proxy -c config.yaml --validate-only
    certbot-proxy --dev
    python -m certbot_proxy --version

Flags override environment variables (``TOKEN_POST_PATH``,
``UPLOAD_PATH``, ``HOST``, ``PORT``), which override the config file.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from certbot_proxy import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certbot-proxy",
        description="certbot-proxy: answers ACME http-01 challenges for a shared proxy host",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Optional configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--token-post-path",
        default=None,
        metavar="PATH",
        help="Path for posting tokens (env TOKEN_POST_PATH, default /token_poster/).",
    )
    parser.add_argument(
        "--upload-path",
        default=None,
        metavar="DIR",
        help="Directory for uploaded files (env UPLOAD_PATH, default ./upload).",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to listen on (env HOST, default localhost).",
    )
    parser.add_argument(
        "--port",
        default=None,
        type=int,
        help="Port to listen on (env PORT, default 4080).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"certbot-proxy: error: {message}\n")


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "admin.path": args.token_post_path,
        "upload.path": args.upload_path,
        "server.bind": args.host,
        "server.port": args.port,
        "logging.level": "DEBUG" if args.debug else None,
    }


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, starts server."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = None
    if args.config is not None:
        config_path = Path(args.config)
        if not config_path.is_file():
            _print_error(f"configuration file not found: {config_path}")
            sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from certbot_proxy.config import CertbotProxyConfig, ConfigValidationError

        config = CertbotProxyConfig(
            config_file=config_path,
            overrides=_overrides(args),
        )
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from certbot_proxy.logging import configure_logging

    configure_logging(config.settings.logging)

    _print_settings_summary(config)
    if args.validate_only:
        sys.exit(0)

    _run_serve(config, args)


def _run_serve(config, args) -> None:
    """Build the app and start the configured server."""
    from certbot_proxy.app import create_app

    app = create_app(config=config)
    server = config.settings.server
    log.info("Open http://%s:%s in the browser", server.bind, server.port)

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=server.bind,
            port=server.port,
            debug=args.debug,
            use_reloader=False,
            threaded=True,
        )
    else:
        try:
            from certbot_proxy.server.gunicorn_app import run_gunicorn

            run_gunicorn(app, server)
        except RuntimeError as exc:
            _print_error(str(exc))
            sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"certbot-proxy {_get_version()}",
        f"  listen          : {s.server.bind}:{s.server.port}",
        f"  token post path : {s.admin.path}",
        f"  upload path     : {s.upload.path}",
        f"  registry        : max {s.registry.max_tokens} tokens ({s.registry.capacity_policy})",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
