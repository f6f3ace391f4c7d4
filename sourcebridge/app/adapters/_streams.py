"""Stream helpers shared by the format converters."""

from __future__ import annotations

import io
import json
from typing import Any


def peek_bytes(stream: io.BytesIO) -> bytes:
    """Return the whole buffer without moving the caller-visible position."""
    position = stream.tell()
    try:
        stream.seek(0)
        return stream.read()
    finally:
        stream.seek(position)


def decode_text(data: bytes, encoding: str | None) -> str:
    """Decode ``data``, tolerating a UTF-8 byte order mark when decoding as UTF-8."""
    codec = (encoding or "utf-8").strip()
    if codec.lower().replace("_", "-") in {"utf-8", "utf8"}:
        codec = "utf-8-sig"
    return data.decode(codec)


def dump_canonical(payload: Any) -> str:
    """Serialize ``payload`` as compact canonical JSON.

    Raises ``ValueError`` for values JSON cannot represent (NaN, infinity).
    """
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
