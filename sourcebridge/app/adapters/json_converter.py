"""Pass-through converter for JSON sources."""

from __future__ import annotations

import io
import json
from collections.abc import Mapping
from typing import Any

from sourcebridge.app.adapters._streams import decode_text, peek_bytes
from sourcebridge.app.ports import ConversionMetadata, ConverterPort
from sourcebridge.errors import FormatError


class JsonConverter(ConverterPort):
    """Validates JSON text and returns it unmodified."""

    format = "json"

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def validate(self, stream: io.BytesIO) -> bool:
        try:
            json.loads(decode_text(peek_bytes(stream), self._encoding))
        except (UnicodeDecodeError, LookupError, ValueError):
            return False
        return True

    def convert(self, stream: io.BytesIO, hints: Mapping[str, Any] | None = None) -> str:
        encoding = str((hints or {}).get("encoding") or self._encoding)
        try:
            text = decode_text(peek_bytes(stream), encoding)
            json.loads(text)
        except (UnicodeDecodeError, LookupError) as exc:
            raise FormatError(f"JSON content is not valid {encoding}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise FormatError(f"Invalid JSON: {exc}") from exc
        return text

    def extract_metadata(self, stream: io.BytesIO) -> ConversionMetadata:
        details: dict[str, Any] = {"format": self.format}
        try:
            parsed = json.loads(decode_text(peek_bytes(stream), self._encoding))
        except (UnicodeDecodeError, LookupError, ValueError):
            pass
        else:
            if isinstance(parsed, dict):
                details["root_type"] = "object"
            elif isinstance(parsed, list):
                details["root_type"] = "array"
            else:
                details["root_type"] = "scalar"

        return ConversionMetadata(format=self.format, encoding=self._encoding.upper(), details=details)
