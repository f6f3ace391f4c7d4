"""Format converter port interface and conversion metadata."""

from __future__ import annotations

import io
from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

FORMAT_TAGS = ("json", "xml", "csv", "excel")


class ConversionMetadata(BaseModel):
    """Structural facts captured while converting one file.

    Enough to interpret the canonical JSON or to attempt a best-effort
    reconstruction of the original shape. Immutable once produced.
    """

    model_config = ConfigDict(frozen=True)

    format: str = Field(..., description="Format tag of the converter that produced it")
    encoding: str | None = Field(None, description="Text encoding of the source bytes")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Format-specific facts (delimiter, sheet name, root element, ...)",
    )

    def as_hints(self) -> dict[str, Any]:
        """Return a mapping suitable for passing back to ``convert`` as hints."""
        hints = dict(self.details)
        if self.encoding:
            hints["encoding"] = self.encoding
        return hints


class ConverterPort(Protocol):
    """Port interface for transcoding one serialization format to canonical JSON.

    Adapters: CSV, XML, Excel, JSON.
    """

    format: str

    def validate(self, stream: io.BytesIO) -> bool:
        """Cheap structural check. Never raises; leaves the stream position unchanged."""
        ...

    def convert(
        self,
        stream: io.BytesIO,
        hints: Mapping[str, Any] | None = None,
    ) -> str:
        """Return canonical JSON text for the stream.

        Raises:
            FormatError: If the content cannot be parsed as this format
        """
        ...

    def extract_metadata(self, stream: io.BytesIO) -> ConversionMetadata:
        """Return conversion metadata; leaves the stream position unchanged."""
        ...
