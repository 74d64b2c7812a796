"""Per-domain artifact upload storage.

Files land at ``<upload base>/<domain>/<filename>``.  Both the domain
and the client-supplied filename are attacker controlled, so each is
checked twice: cheap string heuristics first (``..``, whitespace, a
dot in the domain), then the joined path is resolved and required to
sit directly inside its expected parent.

Usage::

    service = UploadService(settings.upload)
    service.validate_domain(domain)
    for part in request.files.getlist("file"):
        service.store(domain, part)
"""

from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING

import filetype

from certbot_proxy.app.errors import (
    MalformedRequest,
    PathEscape,
    PayloadTooLarge,
    StorageFailure,
)
from certbot_proxy.logging import security_events

if TYPE_CHECKING:
    from werkzeug.datastructures import FileStorage

    from certbot_proxy.config.settings import UploadSettings

log = logging.getLogger(__name__)

SNIFF_BYTES = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoredUpload:
    path: Path
    size: int
    content_type: str


# ---------------------------------------------------------------------------
# Content sniffing (logging only, never used for filtering)
# ---------------------------------------------------------------------------


def sniff_content_type(sample: bytes, filename: str = "", declared: str | None = None) -> str:
    """Best-effort content type of an upload.

    The leading bytes win when ``filetype`` recognises them; otherwise
    the client's declared type, then the filename extension.
    """
    kind = filetype.guess(sample) if sample else None
    if kind is not None:
        return kind.mime
    return declared or mimetypes.guess_type(filename)[0] or DEFAULT_CONTENT_TYPE


def _stream_size(stream: IO[bytes]) -> int:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class UploadService:
    """Validates upload targets and writes file parts under the base dir."""

    def __init__(self, settings: UploadSettings) -> None:
        self._base = Path(settings.path)
        self._max_file_bytes = settings.max_file_bytes

    @property
    def base_path(self) -> Path:
        return self._base

    @property
    def max_file_bytes(self) -> int:
        return self._max_file_bytes

    def domain_dir(self, domain: str) -> Path:
        """Resolved directory for *domain*; must be a direct child of the base."""
        base = self._base.resolve()
        if "\x00" in domain:
            msg = f"Upload: domain {domain!r} is not a valid path"
            raise PathEscape(msg)
        try:
            target = (base / domain).resolve()
        except ValueError as exc:
            msg = f"Upload: domain {domain!r} is not a valid path: {exc}"
            raise PathEscape(msg) from None
        if target.parent != base:
            msg = f"Upload: domain {domain!r} resolves outside {base}"
            raise PathEscape(msg)
        return target

    def validate_domain(self, domain: str, source: str = "-") -> None:
        """Reject domains that cannot safely name a single upload directory."""
        reason = None
        if not domain:
            reason = "empty"
        elif ".." in domain:
            reason = "contains '..'"
        elif "\x00" in domain:
            reason = "contains NUL"
        elif any(ch.isspace() for ch in domain):
            reason = "contains whitespace"
        elif "." not in domain:
            reason = "not a DNS name"
        if reason is not None:
            security_events.upload_domain_rejected(domain, reason, source)
            msg = f"Upload: Invalid domain: {domain!r} ({reason})"
            raise MalformedRequest(msg)

        try:
            self.domain_dir(domain)
        except PathEscape:
            security_events.upload_domain_rejected(domain, "escapes upload base", source)
            raise

    def destination(self, domain: str, filename: str) -> Path:
        """Resolve ``base/domain/filename`` and confine it to the domain dir."""
        domain_dir = self.domain_dir(domain)
        if not filename or ".." in Path(filename).parts or "\x00" in filename:
            msg = f"upload: Invalid upload filename: {filename!r}"
            raise PathEscape(msg)
        target = (domain_dir / filename).resolve()
        if target.parent != domain_dir:
            msg = f"upload: Invalid upload fullpath: {domain_dir / filename}"
            raise PathEscape(msg)
        return target

    def store(self, domain: str, part: FileStorage, source: str = "-") -> StoredUpload:
        """Write one file part to ``base/domain/<filename>``.

        Raises :class:`PayloadTooLarge` or :class:`PathEscape` (400) for
        rejected input and :class:`StorageFailure` (500) when the
        filesystem refuses the directory or the write.
        """
        filename = part.filename or ""
        stream = part.stream

        size = _stream_size(stream)
        if size > self._max_file_bytes:
            security_events.upload_too_large(filename, size, self._max_file_bytes, source)
            msg = f"size of {filename} is larger than {self._max_file_bytes}"
            raise PayloadTooLarge(msg)

        content_type = sniff_content_type(
            stream.read(SNIFF_BYTES),
            filename,
            part.content_type,
        )
        log.info("Upload file %s with type %s", filename, content_type)
        stream.seek(0)

        try:
            target = self.destination(domain, filename)
        except PathEscape:
            security_events.upload_path_escape(domain, filename, source)
            raise

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"upload: Unable to create {target.parent}: {exc}"
            raise StorageFailure(msg) from exc

        try:
            part.save(target)
        except OSError as exc:
            msg = f"upload: Error writing {target}: {exc}"
            raise StorageFailure(msg) from exc

        log.info("%s uploaded", target)
        return StoredUpload(path=target, size=size, content_type=content_type)
