"""Connector port interface and the source/file DTOs it exchanges."""

from __future__ import annotations

import io
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sourcebridge.utils.cancellation import CancellationToken
from sourcebridge.utils.options import DescriptorOptions

SOURCE_TYPES = ("local", "ftp", "sftp", "kafka", "http")

OptionValue = str | int | float | bool | dict[str, str] | None


class SourceDescriptor(BaseModel):
    """One configured external source.

    Created and edited by the management service; connectors only read it.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Source type selecting the connector (local, ftp, ...)")
    address: str = Field(..., description="Directory path, server host, topic name or base URL")
    options: dict[str, OptionValue] = Field(
        default_factory=dict,
        description="Protocol-specific settings such as credentials, ports and timeouts",
    )

    @field_validator("type")
    def _normalize_type(cls, value: str) -> str:
        return value.strip().lower()

    def option_view(self) -> DescriptorOptions:
        """Typed accessor over ``options`` tagged with this source for error context."""
        return DescriptorOptions(self.options, source=self.address)

    def __repr__(self) -> str:
        # Options routinely carry passwords and tokens.
        return f"SourceDescriptor(type={self.type!r}, address={self.address!r}, options=[{len(self.options)} keys])"


class FileMetadata(BaseModel):
    """Facts about one file reference, computed per describe call."""

    path: str = Field(..., description="File reference as passed to describe")
    name: str = Field(..., description="Display name of the file or message")
    size_bytes: int = Field(0, ge=0, description="Size in bytes (0 when unknown)")
    last_modified_utc: datetime = Field(..., description="Last modification time in UTC")
    created_utc: datetime | None = Field(
        None, description="Creation time in UTC when the transport exposes it"
    )
    content_type: str | None = Field(None, description="Extension- or header-derived content type")
    extra: dict[str, str] = Field(
        default_factory=dict, description="Protocol-specific facts (permissions, partition, ...)"
    )


class ConnectorPort(Protocol):
    """Port interface over one transport.

    Adapters: local filesystem, FTP, SFTP, Kafka, HTTP.

    Every operation manages its own connection and releases it on every exit
    path; none requires a prior open call. Only ``test`` swallows failures.
    """

    source_type: str

    def read(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> io.BytesIO:
        """Return the full content of ``reference`` buffered in memory.

        Raises:
            NotFoundError: If the reference does not resolve
            ConnectorConnectionError: If the transport cannot be reached
        """
        ...

    def list(
        self,
        descriptor: SourceDescriptor,
        pattern: str = "*",
        *,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """Return references under the descriptor address matching ``pattern``."""
        ...

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        """Probe the source; never raises."""
        ...

    def describe(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> FileMetadata:
        """Return metadata for ``reference``.

        Raises:
            NotFoundError: If the reference is absent or not a regular file/message
        """
        ...


def describe_options(descriptor: SourceDescriptor) -> dict[str, Any]:
    """Return descriptor options with secret-looking values masked, for logs and CLI output."""
    masked: dict[str, Any] = {}
    for key, value in descriptor.options.items():
        lowered = key.lower()
        if any(marker in lowered for marker in ("password", "token", "secret")):
            masked[key] = "[MASKED]"
        else:
            masked[key] = value
    return masked
