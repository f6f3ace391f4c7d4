"""Connector for local and mounted network filesystems."""

from __future__ import annotations

import io
import logging
import os
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO

from sourcebridge.app.ports import ConnectorPort, FileMetadata, SourceDescriptor
from sourcebridge.config import Settings
from sourcebridge.errors import ConnectorConnectionError, NotFoundError
from sourcebridge.utils.cancellation import CancellationToken, ensure_token
from sourcebridge.utils.content_types import content_type_for
from sourcebridge.utils.patterns import matches_pattern

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows has no advisory locks
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def _shared_read(path: Path) -> Iterator[BinaryIO]:
    """Open ``path`` for reading under a shared advisory lock."""
    with path.open("rb") as handle:
        if fcntl is not None:
            fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
        try:
            yield handle
        finally:
            if fcntl is not None:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class LocalFileConnector(ConnectorPort):
    """Adapter reading files from a directory on a local or mounted filesystem.

    Path traversal in references is not sanitized here; callers that accept
    untrusted references must validate them first.
    """

    source_type = "local"

    def __init__(self, settings: Settings | None = None) -> None:
        self._chunk_size = settings.read_chunk_size if settings else 65536

    def _resolve(self, descriptor: SourceDescriptor, reference: str) -> Path:
        path = Path(reference)
        if path.is_absolute():
            return path
        return Path(descriptor.address) / path

    def read(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> io.BytesIO:
        token = ensure_token(cancel)
        token.raise_if_cancelled("Local read")
        path = self._resolve(descriptor, reference)
        logger.info("Reading file: %s", path)

        if not path.is_file():
            raise NotFoundError(f"File not found: {path}", source=descriptor.address, reference=reference)

        buffer = io.BytesIO()
        try:
            with _shared_read(path) as handle:
                for chunk in iter(lambda: handle.read(self._chunk_size), b""):
                    token.raise_if_cancelled("Local read")
                    buffer.write(chunk)
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {path}", source=descriptor.address, reference=reference) from exc
        except PermissionError as exc:
            raise ConnectorConnectionError(
                f"Access denied: {path}", source=descriptor.address, reference=reference
            ) from exc

        buffer.seek(0)
        return buffer

    def list(
        self,
        descriptor: SourceDescriptor,
        pattern: str = "*",
        *,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        token = ensure_token(cancel)
        token.raise_if_cancelled("Local list")
        base = Path(descriptor.address)
        logger.info("Listing files in: %s with pattern: %s", base, pattern)

        if not base.is_dir():
            logger.warning("Directory not found: %s", base)
            return []

        files: list[str] = []
        try:
            with os.scandir(base) as entries:
                for entry in entries:
                    if entry.is_file() and matches_pattern(entry.name, pattern):
                        files.append(entry.name)
        except PermissionError as exc:
            raise ConnectorConnectionError(f"Access denied to directory: {base}", source=descriptor.address) from exc

        logger.info("Found %d files matching pattern", len(files))
        return files

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        base = Path(descriptor.address)
        logger.info("Testing connection to: %s", base)
        try:
            ensure_token(cancel).raise_if_cancelled("Local test")
            if not base.is_dir():
                logger.warning("Directory does not exist: %s", base)
                return False
            # Enumerate one entry to prove read permission.
            with os.scandir(base) as entries:
                next(entries, None)
        except Exception as exc:  # noqa: BLE001 - test reports failure instead of raising
            logger.error("Error testing connection to %s: %s", base, exc)
            return False

        logger.info("Connection test successful for: %s", base)
        return True

    def describe(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> FileMetadata:
        ensure_token(cancel).raise_if_cancelled("Local describe")
        path = self._resolve(descriptor, reference)
        try:
            info = path.stat()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFoundError(f"File not found: {path}", source=descriptor.address, reference=reference) from exc
        except PermissionError as exc:
            raise ConnectorConnectionError(
                f"Access denied: {path}", source=descriptor.address, reference=reference
            ) from exc

        if not stat.S_ISREG(info.st_mode):
            raise NotFoundError(f"Not a regular file: {path}", source=descriptor.address, reference=reference)

        birth_time = getattr(info, "st_birthtime", None)
        return FileMetadata(
            path=reference,
            name=path.name,
            size_bytes=info.st_size,
            last_modified_utc=datetime.fromtimestamp(info.st_mtime, UTC),
            created_utc=datetime.fromtimestamp(birth_time, UTC) if birth_time is not None else None,
            content_type=content_type_for(path.name),
            extra={"Permissions": stat.filemode(info.st_mode)},
        )
