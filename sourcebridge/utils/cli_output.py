"""JSON output wrapper for CLI commands."""

from __future__ import annotations

import json
from typing import Any

from sourcebridge.utils.schema import build_schema_stamp


def json_response(
    schema_id: str,
    schema_version: int,
    **data: Any,
) -> str:
    """Create schema-wrapped JSON response for CLI output.

    Example:
        >>> json_response("file_list", 1, files=["a.csv"])
        {
          "schema_id": "file_list",
          "schema_version": 1,
          "producer": "sourcebridge-0.1.0",
          "produced_at": "2026-10-17T10:30:00+00:00",
          "files": ["a.csv"]
        }
    """
    stamp = build_schema_stamp(schema_id=schema_id, schema_version=schema_version)
    wrapped = stamp.apply(data)
    return json.dumps(wrapped, indent=2, default=str, ensure_ascii=False)
