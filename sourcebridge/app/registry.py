"""Lookup tables from source type to connector and from format tag to converter."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable

from sourcebridge.app.ports import FORMAT_TAGS, ConnectorPort, ConverterPort
from sourcebridge.errors import UnsupportedFormatError, UnsupportedSourceTypeError

logger = logging.getLogger(__name__)

# Cheapest and least ambiguous checks first: JSON and XML are strict
# grammars, CSV accepts almost any text, Excel is a binary container.
SNIFF_ORDER = ("json", "xml", "csv", "excel")

FORMAT_ALIASES = {
    "xlsx": "excel",
    "xls": "excel",
    "tsv": "csv",
    "txt": "csv",
}


class ConnectorRegistry:
    """Maps a source type tag to the connector serving it."""

    def __init__(self, connectors: Iterable[ConnectorPort]) -> None:
        self._connectors: dict[str, ConnectorPort] = {}
        for connector in connectors:
            self._connectors[connector.source_type.lower()] = connector

    def resolve(self, source_type: str) -> ConnectorPort:
        """Return the connector for ``source_type``.

        Raises:
            UnsupportedSourceTypeError: If no connector is registered for it
        """
        try:
            return self._connectors[source_type.strip().lower()]
        except KeyError:
            raise UnsupportedSourceTypeError(
                f"Unsupported source type: {source_type!r} (known: {', '.join(self.types())})"
            ) from None

    def types(self) -> list[str]:
        return sorted(self._connectors)

    def __contains__(self, source_type: str) -> bool:
        return source_type.strip().lower() in self._connectors


class ConverterRegistry:
    """Maps a format tag to its converter and sniffs formats from content."""

    def __init__(self, converters: Iterable[ConverterPort]) -> None:
        self._converters: dict[str, ConverterPort] = {}
        for converter in converters:
            self._converters[converter.format.lower()] = converter

    def resolve(self, source_format: str) -> ConverterPort:
        """Return the converter for ``source_format`` (aliases such as ``xlsx`` accepted).

        Raises:
            UnsupportedFormatError: If no converter handles the format
        """
        tag = source_format.strip().lower().lstrip(".")
        tag = FORMAT_ALIASES.get(tag, tag)
        try:
            return self._converters[tag]
        except KeyError:
            raise UnsupportedFormatError(
                f"Unsupported format: {source_format!r} (known: {', '.join(self.formats())})"
            ) from None

    def formats(self) -> list[str]:
        ordered = [tag for tag in FORMAT_TAGS if tag in self._converters]
        return ordered + sorted(tag for tag in self._converters if tag not in FORMAT_TAGS)

    def sniff(self, stream: io.BytesIO) -> ConverterPort:
        """Return the first converter whose ``validate`` accepts the stream.

        Raises:
            UnsupportedFormatError: If no registered converter accepts the content
        """
        candidates = [tag for tag in SNIFF_ORDER if tag in self._converters]
        candidates += [tag for tag in self._converters if tag not in SNIFF_ORDER]
        for tag in candidates:
            converter = self._converters[tag]
            if converter.validate(stream):
                logger.debug("Sniffed format: %s", tag)
                return converter
        raise UnsupportedFormatError("Content does not match any registered format")
