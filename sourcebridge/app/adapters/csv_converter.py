"""CSV to canonical JSON converter."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Mapping
from typing import Any

from sourcebridge.app.adapters._streams import decode_text, dump_canonical, peek_bytes
from sourcebridge.app.ports import ConversionMetadata, ConverterPort
from sourcebridge.errors import FormatError

logger = logging.getLogger(__name__)

_CANDIDATE_DELIMITERS = ",;\t|"


class CsvConverter(ConverterPort):
    """Converter turning a header-first CSV file into an array of string records."""

    format = "csv"

    def __init__(self, *, delimiter: str = ",", encoding: str = "utf-8") -> None:
        self._delimiter = delimiter
        self._encoding = encoding

    def validate(self, stream: io.BytesIO) -> bool:
        data = peek_bytes(stream)
        # NUL bytes mean a binary container such as .xlsx, never delimited text.
        if b"\x00" in data:
            return False
        try:
            first_line = self._first_line(data, self._encoding)
        except (UnicodeDecodeError, LookupError):
            return False
        return bool(first_line) and self._delimiter in first_line

    def convert(self, stream: io.BytesIO, hints: Mapping[str, Any] | None = None) -> str:
        hints = hints or {}
        encoding = str(hints.get("encoding") or self._encoding)
        delimiter = str(hints.get("delimiter") or self._delimiter)

        try:
            text = decode_text(peek_bytes(stream), encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            raise FormatError(f"CSV content is not valid {encoding}: {exc}") from exc

        try:
            reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
            headers = next(reader, None)
            if headers is None:
                return "[]"

            records = []
            for row in reader:
                if not row:
                    continue
                # Short rows pad with "", surplus cells are dropped.
                padded = row + [""] * (len(headers) - len(row))
                records.append(dict(zip(headers, padded)))
        except csv.Error as exc:
            raise FormatError(f"Malformed CSV content: {exc}") from exc

        logger.debug("Converted %d CSV rows with %d columns", len(records), len(headers))
        return dump_canonical(records)

    def extract_metadata(self, stream: io.BytesIO) -> ConversionMetadata:
        try:
            first_line = self._first_line(peek_bytes(stream), self._encoding)
        except (UnicodeDecodeError, LookupError):
            first_line = ""

        return ConversionMetadata(
            format=self.format,
            encoding=self._encoding.upper(),
            details={
                "delimiter": self._sniff_delimiter(first_line),
                "has_header": True,
                "headers": first_line,
            },
        )

    @staticmethod
    def _first_line(data: bytes, encoding: str) -> str:
        # Only the header line is decoded; bad bytes further down are left to convert.
        head = data.split(b"\n", 1)[0]
        text = decode_text(head, encoding)
        return text.splitlines()[0] if text else ""

    def _sniff_delimiter(self, first_line: str) -> str:
        if not first_line:
            return self._delimiter
        try:
            return csv.Sniffer().sniff(first_line, delimiters=_CANDIDATE_DELIMITERS).delimiter
        except csv.Error:
            return self._delimiter
