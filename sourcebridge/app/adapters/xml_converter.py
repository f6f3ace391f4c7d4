"""XML to canonical JSON converter."""

from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import Any

from sourcebridge.app.adapters._streams import dump_canonical, peek_bytes
from sourcebridge.app.ports import ConversionMetadata, ConverterPort
from sourcebridge.errors import FormatError

logger = logging.getLogger(__name__)

_DECLARED_ENCODING = re.compile(rb"""^\s*<\?xml[^>]*encoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def element_to_json(element: ET.Element) -> Any:
    """Map an element to a JSON value.

    An element with children becomes an object keyed by child local name;
    a name repeated under one parent becomes an array in document order; a
    leaf collapses to its trimmed text. Attributes are not mapped.
    """
    children = [child for child in element if isinstance(child.tag, str)]
    if not children:
        return (element.text or "").strip()

    mapped: dict[str, Any] = {}
    repeated: set[str] = set()
    for child in children:
        key = _local_name(child.tag)
        value = element_to_json(child)
        if key not in mapped:
            mapped[key] = value
        elif key in repeated:
            mapped[key].append(value)
        else:
            mapped[key] = [mapped[key], value]
            repeated.add(key)
    return mapped


class XmlConverter(ConverterPort):
    """Converter mapping the XML element tree to nested JSON objects."""

    format = "xml"

    def validate(self, stream: io.BytesIO) -> bool:
        try:
            ET.fromstring(peek_bytes(stream))
        except (ET.ParseError, ValueError):
            return False
        return True

    def convert(self, stream: io.BytesIO, hints: Mapping[str, Any] | None = None) -> str:
        root = self._parse(peek_bytes(stream))
        return dump_canonical(element_to_json(root))

    def extract_metadata(self, stream: io.BytesIO) -> ConversionMetadata:
        data = peek_bytes(stream)
        root = self._parse(data)
        declared = _DECLARED_ENCODING.match(data.lstrip(b"\xef\xbb\xbf"))
        encoding = declared.group(1).decode("ascii").upper() if declared else "UTF-8"

        return ConversionMetadata(
            format=self.format,
            encoding=encoding,
            details={
                "root_element": _local_name(root.tag),
                "has_namespace": root.tag.startswith("{"),
            },
        )

    @staticmethod
    def _parse(data: bytes) -> ET.Element:
        try:
            return ET.fromstring(data)
        except (ET.ParseError, ValueError) as exc:
            logger.debug("XML parse failed: %s", exc)
            raise FormatError(f"Malformed XML content: {exc}") from exc
