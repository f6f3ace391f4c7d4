"""Excel (.xlsx) to canonical JSON converter backed by openpyxl."""

from __future__ import annotations

import io
import logging
import zipfile
from xml.etree.ElementTree import ParseError
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from sourcebridge.app.adapters._streams import dump_canonical, peek_bytes
from sourcebridge.app.ports import ConversionMetadata, ConverterPort
from sourcebridge.errors import FormatError

logger = logging.getLogger(__name__)

_ZIP_SIGNATURE = b"PK\x03\x04"


def _cell_value(value: Any) -> Any:
    """Coerce an openpyxl cell value into a JSON-native value."""
    if value is None:
        return ""
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def _sheet_dimensions(sheet: Worksheet) -> tuple[int, int]:
    """Return (rows, columns) of the used range; (0, 0) for an empty sheet."""
    rows, columns = sheet.max_row or 0, sheet.max_column or 0
    if rows <= 1 and columns <= 1 and sheet.cell(row=1, column=1).value is None:
        return 0, 0
    return rows, columns


class ExcelConverter(ConverterPort):
    """Converter reading the first worksheet, row 1 as header, into an array of records."""

    format = "excel"

    def validate(self, stream: io.BytesIO) -> bool:
        data = peek_bytes(stream)
        if not data.startswith(_ZIP_SIGNATURE):
            return False
        try:
            workbook = self._load(data)
        except Exception:  # noqa: BLE001 - validate reports rejection instead of raising
            return False
        try:
            if not workbook.worksheets:
                return False
            # Touch the first sheet so a corrupt worksheet part is rejected here.
            _sheet_dimensions(workbook.worksheets[0])
            return True
        except Exception:  # noqa: BLE001 - validate reports rejection instead of raising
            return False
        finally:
            workbook.close()

    def convert(self, stream: io.BytesIO, hints: Mapping[str, Any] | None = None) -> str:
        workbook = self._load(peek_bytes(stream))
        try:
            if not workbook.worksheets:
                raise FormatError("Workbook contains no worksheets")
            sheet = workbook.worksheets[0]
            rows, columns = _sheet_dimensions(sheet)
            if rows == 0:
                return "[]"

            headers = []
            for column in range(1, columns + 1):
                header = sheet.cell(row=1, column=column).value
                text = "" if header is None else str(header).strip()
                headers.append(text or f"Column{column}")

            records = []
            for row in sheet.iter_rows(min_row=2, max_row=rows, max_col=columns, values_only=True):
                values = list(row) + [None] * (columns - len(row))
                records.append(
                    {header: _cell_value(value) for header, value in zip(headers, values)}
                )
        finally:
            workbook.close()

        logger.debug("Converted sheet %r: %d records", sheet.title, len(records))
        try:
            return dump_canonical(records)
        except ValueError as exc:
            raise FormatError(f"Worksheet holds values JSON cannot represent: {exc}") from exc

    def extract_metadata(self, stream: io.BytesIO) -> ConversionMetadata:
        workbook = self._load(peek_bytes(stream))
        try:
            if not workbook.worksheets:
                raise FormatError("Workbook contains no worksheets")
            sheet = workbook.worksheets[0]
            rows, columns = _sheet_dimensions(sheet)
            return ConversionMetadata(
                format=self.format,
                encoding=None,
                details={
                    "sheet_count": len(workbook.sheetnames),
                    "sheet_name": sheet.title,
                    "row_count": rows,
                    "column_count": columns,
                    "has_header": True,
                },
            )
        finally:
            workbook.close()

    @staticmethod
    def _load(data: bytes) -> Workbook:
        try:
            return load_workbook(io.BytesIO(data), data_only=True)
        except (
            InvalidFileException,
            zipfile.BadZipFile,
            ParseError,
            KeyError,
            OSError,
            ValueError,
            TypeError,
            AttributeError,
        ) as exc:
            raise FormatError(f"Not a readable .xlsx workbook: {exc}") from exc
