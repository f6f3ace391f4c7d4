"""Connector fetching files from HTTP(S) endpoints."""

from __future__ import annotations

import io
import logging
import posixpath
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from urllib.parse import urljoin, urlparse

import requests
from requests.auth import AuthBase, HTTPBasicAuth

from sourcebridge.app.ports import ConnectorPort, FileMetadata, SourceDescriptor
from sourcebridge.config import Settings
from sourcebridge.errors import (
    ConnectorConnectionError,
    FormatError,
    InvalidArgumentError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    SourceBridgeError,
)
from sourcebridge.utils.cancellation import CancellationToken, ensure_token

logger = logging.getLogger(__name__)

AUTH_TYPES = ("none", "bearer", "basic")
_MISSING_STATUSES = {404, 410}


@dataclass(slots=True)
class HttpConfig:
    timeout: float
    list_endpoint: str | None
    headers: dict[str, str] = field(default_factory=dict)
    auth: AuthBase | None = None


def _parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class HttpConnector(ConnectorPort):
    """Adapter treating URLs as files.

    Options: ``HttpAuthType`` (none/bearer/basic), ``HttpBearerToken``,
    ``HttpUsername``, ``HttpPassword``, ``HttpTimeoutSeconds``,
    ``HttpListEndpoint``, ``HttpCustomHeaders``.
    """

    source_type = "http"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    def _config(self, descriptor: SourceDescriptor) -> HttpConfig:
        options = descriptor.option_view()
        timeout = options.get_float("HttpTimeoutSeconds", self._settings.http_timeout_seconds)
        if timeout is None or timeout <= 0:
            raise InvalidArgumentError(
                f"Option HttpTimeoutSeconds must be positive, got {timeout!r}",
                source=descriptor.address,
            )
        config = HttpConfig(
            timeout=timeout,
            list_endpoint=options.get_str("HttpListEndpoint") or None,
            headers=options.get_mapping("HttpCustomHeaders"),
        )

        auth_type = (options.get_str("HttpAuthType", "none") or "none").lower()
        if auth_type not in AUTH_TYPES:
            raise InvalidArgumentError(
                f"Option HttpAuthType must be one of {', '.join(AUTH_TYPES)}, got {auth_type!r}",
                source=descriptor.address,
            )
        # Credentials are only sent when present.
        if auth_type == "bearer":
            bearer_token = options.get_str("HttpBearerToken")
            if bearer_token:
                config.headers["Authorization"] = f"Bearer {bearer_token}"
        elif auth_type == "basic":
            username = options.get_str("HttpUsername")
            if username:
                config.auth = HTTPBasicAuth(username, options.get_str("HttpPassword", "") or "")
        return config

    @contextmanager
    def _session(self, config: HttpConfig, token: CancellationToken) -> Iterator[requests.Session]:
        token.raise_if_cancelled("HTTP request")
        session = requests.Session()
        session.headers.update(config.headers)
        session.auth = config.auth
        # Closing the session drops its pooled sockets, aborting a pending read.
        unregister = token.register(session.close)
        try:
            yield session
        finally:
            unregister()
            session.close()

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
        except requests.Timeout as exc:
            if token.cancelled:
                raise OperationCancelledError("HTTP request cancelled", source=descriptor.address, reference=reference) from exc
            raise OperationTimeoutError(f"HTTP request timed out: {exc}", source=descriptor.address, reference=reference) from exc
        except requests.RequestException as exc:
            if token.cancelled:
                raise OperationCancelledError("HTTP request cancelled", source=descriptor.address, reference=reference) from exc
            raise ConnectorConnectionError(f"HTTP request failed: {exc}", source=descriptor.address, reference=reference) from exc

    @staticmethod
    def _check_status(response: requests.Response, descriptor: SourceDescriptor, reference: str) -> None:
        if response.ok:
            return
        message = f"HTTP {response.status_code} {response.reason or ''}".rstrip()
        if response.status_code in _MISSING_STATUSES:
            raise NotFoundError(message, source=descriptor.address, reference=reference)
        raise ConnectorConnectionError(message, source=descriptor.address, reference=reference)

    def read(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> io.BytesIO:
        token = ensure_token(cancel)
        config = self._config(descriptor)
        logger.info("Reading from HTTP: %s", reference)

        buffer = io.BytesIO()
        with self._translate_errors(descriptor, token, reference), self._session(config, token) as session:
            with session.get(reference, timeout=config.timeout, stream=True) as response:
                self._check_status(response, descriptor, reference)
                for chunk in response.iter_content(chunk_size=self._settings.read_chunk_size):
                    token.raise_if_cancelled("HTTP read")
                    buffer.write(chunk)

        buffer.seek(0)
        return buffer

    def list(
        self,
        descriptor: SourceDescriptor,
        pattern: str = "*",
        *,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """Return the URLs named by the list endpoint, or the address itself.

        ``pattern`` is ignored.
        """
        token = ensure_token(cancel)
        config = self._config(descriptor)
        if not config.list_endpoint:
            token.raise_if_cancelled("HTTP list")
            return [descriptor.address]

        endpoint = urljoin(descriptor.address, config.list_endpoint)
        logger.info("Listing files from HTTP endpoint: %s", endpoint)
        with self._translate_errors(descriptor, token, endpoint), self._session(config, token) as session:
            response = session.get(endpoint, timeout=config.timeout)
            self._check_status(response, descriptor, endpoint)
            try:
                payload = response.json()
            except ValueError as exc:
                raise FormatError(
                    f"List endpoint did not return JSON: {exc}", source=descriptor.address, reference=endpoint
                ) from exc

        if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
            raise FormatError(
                "List endpoint must return a JSON array of strings",
                source=descriptor.address,
                reference=endpoint,
            )

        logger.info("Found %d files on HTTP list endpoint", len(payload))
        return payload

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        try:
            token = ensure_token(cancel)
            config = self._config(descriptor)
            logger.info("Testing HTTP connection to: %s", descriptor.address)
            with self._translate_errors(descriptor, token), self._session(config, token) as session:
                response = session.get(descriptor.address, timeout=config.timeout)
                response.close()
        except Exception as exc:  # noqa: BLE001 - test reports failure instead of raising
            logger.error("HTTP connection test failed: %s", exc)
            return False

        if not response.ok:
            logger.warning("HTTP connection test got status %d", response.status_code)
            return False
        logger.info("HTTP connection test successful")
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

        with self._translate_errors(descriptor, token, reference), self._session(config, token) as session:
            response = session.head(reference, timeout=config.timeout, allow_redirects=True)
            self._check_status(response, descriptor, reference)

        length = response.headers.get("Content-Length", "")
        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        return FileMetadata(
            path=reference,
            name=posixpath.basename(urlparse(reference).path),
            size_bytes=int(length) if length.isdigit() else 0,
            last_modified_utc=_parse_http_date(response.headers.get("Last-Modified")) or datetime.now(UTC),
            created_utc=None,
            content_type=content_type or "application/json",
        )
