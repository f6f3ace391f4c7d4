"""Content type detection by file extension."""

from __future__ import annotations

import posixpath

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_EXTENSION_CONTENT_TYPES = {
    ".json": "application/json",
    ".xml": "application/xml",
    ".csv": "text/csv",
    ".txt": "text/plain",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
}


def content_type_for(path: str) -> str:
    """Return the content type implied by the extension of ``path``."""
    extension = posixpath.splitext(path.replace("\\", "/"))[1].lower()
    return _EXTENSION_CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)
