"""Connector for SFTP (SSH File Transfer Protocol) servers."""

from __future__ import annotations

import errno
import io
import logging
import posixpath
import socket
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import paramiko

from sourcebridge.app.adapters._remote import resolve_endpoint, resolve_remote_path
from sourcebridge.app.ports import ConnectorPort, FileMetadata, SourceDescriptor
from sourcebridge.config import Settings
from sourcebridge.errors import (
    ConnectorConnectionError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    SourceBridgeError,
)
from sourcebridge.utils.cancellation import CancellationToken, ensure_token
from sourcebridge.utils.content_types import content_type_for
from sourcebridge.utils.patterns import matches_pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SftpConfig:
    host: str
    port: int
    root: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"SftpConfig(host={self.host!r}, port={self.port}, root={self.root!r}, username={self.username!r})"


class SftpConnector(ConnectorPort):
    """Adapter for SFTP servers using password authentication.

    Options: ``SftpServer``, ``SftpPort`` (22), ``SftpUsername``, ``SftpPassword``.
    Each call opens its own SSH transport and closes it before returning.
    """

    source_type = "sftp"

    def __init__(self, settings: Settings | None = None) -> None:
        self._timeout = settings.connect_timeout_seconds if settings else 30.0

    def _config(self, descriptor: SourceDescriptor) -> SftpConfig:
        options = descriptor.option_view()
        endpoint = resolve_endpoint(
            descriptor,
            scheme="sftp",
            server_option="SftpServer",
            port_option="SftpPort",
            default_port=22,
        )
        return SftpConfig(
            host=endpoint.host,
            port=endpoint.port,
            root=endpoint.root,
            username=options.get_str("SftpUsername", "") or "",
            password=options.get_str("SftpPassword", "") or "",
        )

    @contextmanager
    def _translate_errors(
        self,
        descriptor: SourceDescriptor,
        token: CancellationToken,
        reference: str | None = None,
    ) -> Iterator[None]:
        try:
            yield
        except SourceBridgeError:
            raise
        except paramiko.AuthenticationException as exc:
            raise ConnectorConnectionError(
                f"SFTP authentication failed: {exc}", source=descriptor.address, reference=reference
            ) from exc
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {exc}", source=descriptor.address, reference=reference) from exc
        except TimeoutError as exc:
            if token.cancelled:
                raise OperationCancelledError("SFTP operation cancelled", source=descriptor.address, reference=reference) from exc
            raise OperationTimeoutError(f"SFTP operation timed out: {exc}", source=descriptor.address, reference=reference) from exc
        except (paramiko.SSHException, OSError, EOFError) as exc:
            if token.cancelled:
                raise OperationCancelledError("SFTP operation cancelled", source=descriptor.address, reference=reference) from exc
            if isinstance(exc, OSError) and exc.errno == errno.ENOENT:
                raise NotFoundError(f"File not found: {exc}", source=descriptor.address, reference=reference) from exc
            raise ConnectorConnectionError(f"SFTP transport error: {exc}", source=descriptor.address, reference=reference) from exc

    @contextmanager
    def _session(self, config: SftpConfig, token: CancellationToken) -> Iterator[paramiko.SFTPClient]:
        token.raise_if_cancelled("SFTP connect")
        sock = socket.create_connection((config.host, config.port), timeout=self._timeout)
        try:
            transport = paramiko.Transport(sock)
        except Exception:
            sock.close()
            raise
        # Closing the transport from another thread unblocks any pending read.
        unregister = token.register(transport.close)
        try:
            transport.banner_timeout = self._timeout
            transport.connect(username=config.username, password=config.password)
            client = paramiko.SFTPClient.from_transport(transport)
            if client is None:
                raise ConnectorConnectionError(f"SFTP subsystem unavailable on {config.host}")
            client.get_channel().settimeout(self._timeout)
            try:
                yield client
            finally:
                client.close()
        finally:
            unregister()
            transport.close()

    def read(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> io.BytesIO:
        token = ensure_token(cancel)
        config = self._config(descriptor)
        path = resolve_remote_path(config.root, reference)
        logger.info("Reading file from SFTP: %s", path)

        buffer = io.BytesIO()

        def progress(transferred: int, total: int) -> None:
            token.raise_if_cancelled("SFTP read")

        with self._translate_errors(descriptor, token, reference), self._session(config, token) as client:
            client.getfo(path, buffer, callback=progress)

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
        config = self._config(descriptor)
        logger.info("Listing files from SFTP: %s with pattern: %s", config.root, pattern)

        with self._translate_errors(descriptor, token), self._session(config, token) as client:
            files = [
                entry.filename
                for entry in client.listdir_attr(config.root)
                if entry.st_mode is not None
                and stat.S_ISREG(entry.st_mode)
                and matches_pattern(entry.filename, pattern)
            ]

        logger.info("Found %d files matching pattern on SFTP", len(files))
        return files

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        try:
            token = ensure_token(cancel)
            config = self._config(descriptor)
            logger.info("Testing SFTP connection to: %s", config.host)
            with self._translate_errors(descriptor, token), self._session(config, token):
                pass
        except Exception as exc:  # noqa: BLE001 - test reports failure instead of raising
            logger.error("SFTP connection test failed: %s", exc)
            return False

        logger.info("SFTP connection test successful")
        return True

    def describe(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> FileMetadata:
        token = ensure_token(cancel)
        config = self._config(descriptor)
        path = resolve_remote_path(config.root, reference)

        with self._translate_errors(descriptor, token, reference), self._session(config, token) as client:
            attrs = client.stat(path)

        if attrs.st_mode is None or not stat.S_ISREG(attrs.st_mode):
            raise NotFoundError(f"Not a regular file: {path}", source=descriptor.address, reference=reference)

        modified = datetime.fromtimestamp(attrs.st_mtime, UTC) if attrs.st_mtime is not None else datetime.now(UTC)
        return FileMetadata(
            path=reference,
            name=posixpath.basename(path),
            size_bytes=attrs.st_size or 0,
            last_modified_utc=modified,
            # SFTP v3 exposes no creation time.
            created_utc=None,
            content_type=content_type_for(path),
            extra={
                "SftpPermissions": stat.filemode(attrs.st_mode),
                "SftpUserId": "" if attrs.st_uid is None else str(attrs.st_uid),
            },
        )
