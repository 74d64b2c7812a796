"""Structured security event logger.

Emits abuse signals (registry flooding, oversized or escaping uploads)
to the ``certbot_proxy.security`` logger with a consistent
``event_id`` field for filtering and alerting.
"""

from __future__ import annotations

import logging
from typing import Any

security_log = logging.getLogger("certbot_proxy.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "WARNING",
    **extra: Any,  # noqa: ANN401
) -> None:
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(extra)
    level = getattr(logging, severity.upper(), logging.WARNING)
    security_log.log(level, message, *args, extra=data)


def token_limit_reached(max_tokens: int, domain: str, source: str, *, rejected: bool) -> None:
    """Log a write against a full token registry (possible DoS)."""
    _emit(
        "certbot_proxy.security.token_limit_reached",
        "Hit token limit of %d, someone is probably doing DoS, maybe from %s",
        max_tokens,
        source,
        domain=domain,
        source=source,
        rejected=rejected,
    )


def upload_too_large(filename: str, size: int, limit: int, source: str) -> None:
    """Log an upload part over the per-file size limit."""
    _emit(
        "certbot_proxy.security.upload_too_large",
        "Upload %s is %d bytes, larger than %d",
        filename,
        size,
        limit,
        upload_name=filename,
        size=size,
        limit=limit,
        source=source,
    )


def upload_path_escape(domain: str, filename: str, source: str) -> None:
    """Log an upload whose destination would leave the domain directory."""
    _emit(
        "certbot_proxy.security.upload_path_escape",
        "Upload path escape attempt for %s: %r",
        domain,
        filename,
        domain=domain,
        upload_name=filename,
        source=source,
    )


def upload_domain_rejected(domain: str, reason: str, source: str) -> None:
    """Log an upload naming an invalid domain directory."""
    _emit(
        "certbot_proxy.security.upload_domain_rejected",
        "Upload: invalid domain %r (%s)",
        domain,
        reason,
        severity="INFO",
        domain=domain,
        reason=reason,
        source=source,
    )
