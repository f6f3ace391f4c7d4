"""Connector for FTP and explicit-TLS FTPS servers."""

from __future__ import annotations

import ftplib
import io
import logging
import posixpath
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

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

# Replies meaning "command not implemented / not understood" rather than a real failure.
_UNSUPPORTED_REPLIES = {"500", "501", "502", "504"}


@dataclass(frozen=True, slots=True)
class FtpConfig:
    host: str
    port: int
    root: str
    username: str
    password: str
    passive: bool
    use_tls: bool


def _reply_code(exc: ftplib.Error) -> str:
    return str(exc)[:3]


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3659 ``YYYYMMDDHHMMSS[.sss]`` timestamp as UTC."""
    if not value or len(value) < 14:
        return None
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=UTC)
    except ValueError:
        return None


def _parse_mlst(response: str) -> dict[str, str]:
    """Extract the facts from a multi-line ``MLST`` reply."""
    for line in response.splitlines()[1:]:
        line = line.strip()
        if not line or line[:3].isdigit():
            continue
        facts_part = line.partition(" ")[0]
        facts = {}
        for fact in facts_part.split(";"):
            name, sep, value = fact.partition("=")
            if sep:
                facts[name.lower()] = value
        return facts
    return {}


class FtpConnector(ConnectorPort):
    """Adapter for FTP servers, one control connection per call.

    Options: ``FtpServer``, ``FtpPort`` (21), ``FtpUsername`` (anonymous),
    ``FtpPassword``, ``FtpUsePassiveMode`` (true), ``FtpUseSsl`` (false).
    """

    source_type = "ftp"

    def __init__(self, settings: Settings | None = None) -> None:
        self._timeout = settings.connect_timeout_seconds if settings else 30.0

    def _config(self, descriptor: SourceDescriptor) -> FtpConfig:
        options = descriptor.option_view()
        endpoint = resolve_endpoint(
            descriptor,
            scheme="ftp",
            server_option="FtpServer",
            port_option="FtpPort",
            default_port=21,
        )
        return FtpConfig(
            host=endpoint.host,
            port=endpoint.port,
            root=endpoint.root,
            username=options.get_str("FtpUsername", "anonymous") or "anonymous",
            password=options.get_str("FtpPassword", "") or "",
            passive=options.get_bool("FtpUsePassiveMode", True),
            use_tls=options.get_bool("FtpUseSsl", False),
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
        except ftplib.error_perm as exc:
            if token.cancelled:
                raise OperationCancelledError("FTP operation cancelled", source=descriptor.address, reference=reference) from exc
            code = _reply_code(exc)
            if code == "550":
                raise NotFoundError(f"File not found: {exc}", source=descriptor.address, reference=reference) from exc
            if code in {"530", "532"}:
                raise ConnectorConnectionError(f"FTP login failed: {exc}", source=descriptor.address, reference=reference) from exc
            raise ConnectorConnectionError(f"FTP command rejected: {exc}", source=descriptor.address, reference=reference) from exc
        except TimeoutError as exc:
            if token.cancelled:
                raise OperationCancelledError("FTP operation cancelled", source=descriptor.address, reference=reference) from exc
            raise OperationTimeoutError(f"FTP operation timed out: {exc}", source=descriptor.address, reference=reference) from exc
        except ftplib.all_errors as exc:
            if token.cancelled:
                raise OperationCancelledError("FTP operation cancelled", source=descriptor.address, reference=reference) from exc
            raise ConnectorConnectionError(f"FTP transport error: {exc}", source=descriptor.address, reference=reference) from exc

    @contextmanager
    def _session(self, config: FtpConfig, token: CancellationToken) -> Iterator[ftplib.FTP]:
        token.raise_if_cancelled("FTP connect")
        client: ftplib.FTP = ftplib.FTP_TLS(timeout=self._timeout) if config.use_tls else ftplib.FTP(timeout=self._timeout)
        # Closing the socket from another thread unblocks any pending read.
        unregister = token.register(client.close)
        try:
            client.connect(config.host, config.port)
            client.login(config.username, config.password)
            if isinstance(client, ftplib.FTP_TLS):
                client.prot_p()
            client.set_pasv(config.passive)
            yield client
        finally:
            unregister()
            if token.cancelled:
                client.close()
            else:
                try:
                    client.quit()
                except ftplib.all_errors:
                    client.close()

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
        logger.info("Reading file from FTP: %s", path)

        buffer = io.BytesIO()

        def write_chunk(chunk: bytes) -> None:
            token.raise_if_cancelled("FTP read")
            buffer.write(chunk)

        with self._translate_errors(descriptor, token, reference), self._session(config, token) as client:
            client.retrbinary(f"RETR {path}", write_chunk)

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
        logger.info("Listing files from FTP: %s with pattern: %s", config.root, pattern)

        with self._translate_errors(descriptor, token), self._session(config, token) as client:
            files = [
                name
                for name in self._file_names(client, config.root, token)
                if matches_pattern(name, pattern)
            ]

        logger.info("Found %d files matching pattern on FTP", len(files))
        return files

    def _file_names(self, client: ftplib.FTP, root: str, token: CancellationToken) -> list[str]:
        """Regular file names directly under ``root``, in server listing order."""
        try:
            entries = list(client.mlsd(root, facts=["type"]))
        except ftplib.error_perm as exc:
            if _reply_code(exc) not in _UNSUPPORTED_REPLIES:
                raise
            logger.debug("MLSD unsupported, falling back to NLST: %s", exc)
        else:
            return [name for name, facts in entries if facts.get("type", "").lower() == "file"]

        client.voidcmd("TYPE I")
        names = []
        for raw in client.nlst(root):
            token.raise_if_cancelled("FTP list")
            name = posixpath.basename(raw.rstrip("/"))
            if name in {"", ".", ".."}:
                continue
            try:
                # SIZE is refused for directories.
                client.size(posixpath.join(root, name))
            except ftplib.error_perm:
                continue
            names.append(name)
        return names

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        try:
            token = ensure_token(cancel)
            config = self._config(descriptor)
            logger.info("Testing FTP connection to: %s", config.host)
            with self._translate_errors(descriptor, token), self._session(config, token) as client:
                client.pwd()
        except Exception as exc:  # noqa: BLE001 - test reports failure instead of raising
            logger.error("FTP connection test failed: %s", exc)
            return False

        logger.info("FTP connection test successful")
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
            facts = self._stat(client, path)

        if facts.get("type", "file").lower() != "file":
            raise NotFoundError(f"Not a regular file: {path}", source=descriptor.address, reference=reference)

        size = facts.get("size", "0")
        return FileMetadata(
            path=reference,
            name=posixpath.basename(path),
            size_bytes=int(size) if size.isdigit() else 0,
            last_modified_utc=_parse_timestamp(facts.get("modify")) or datetime.now(UTC),
            created_utc=_parse_timestamp(facts.get("create")),
            content_type=content_type_for(path),
            extra={
                "FtpPermissions": facts.get("unix.mode") or facts.get("perm", ""),
                "FtpOwner": facts.get("unix.owner", ""),
            },
        )

    def _stat(self, client: ftplib.FTP, path: str) -> dict[str, str]:
        """Return MLST facts for ``path``, or SIZE/MDTM facts on older servers."""
        try:
            return _parse_mlst(client.sendcmd(f"MLST {path}"))
        except ftplib.error_perm as exc:
            if _reply_code(exc) not in _UNSUPPORTED_REPLIES:
                raise
            logger.debug("MLST unsupported, falling back to SIZE/MDTM: %s", exc)

        client.voidcmd("TYPE I")
        size = client.size(path)
        facts = {"type": "file", "size": str(size or 0)}
        try:
            facts["modify"] = client.voidcmd(f"MDTM {path}").split()[-1]
        except ftplib.error_perm:
            pass
        return facts
