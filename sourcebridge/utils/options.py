"""Typed, lazily validated access to source descriptor options."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from sourcebridge.errors import InvalidArgumentError

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class DescriptorOptions:
    """Read-only view over a descriptor's ``options`` mapping.

    Values are checked only when a connector asks for them, so a descriptor
    carrying options for another transport never fails early. Every accessor
    raises ``InvalidArgumentError`` naming the key when a value has the wrong
    shape.
    """

    def __init__(self, options: Mapping[str, Any], *, source: str | None = None) -> None:
        self._options = options
        self._source = source

    def __contains__(self, key: str) -> bool:
        return self._options.get(key) is not None

    def _invalid(self, key: str, expected: str, value: Any) -> InvalidArgumentError:
        return InvalidArgumentError(
            f"Option {key} must be {expected}, got {value!r}",
            source=self._source,
        )

    def get_str(self, key: str, default: str | None = None) -> str | None:
        value = self._options.get(key)
        if value is None:
            return default
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
        raise self._invalid(key, "a string", value)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self._options.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise self._invalid(key, "an integer", value)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise self._invalid(key, "an integer", value)

    def get_float(self, key: str, default: float | None = None) -> float | None:
        value = self._options.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise self._invalid(key, "a number", value)
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass
        raise self._invalid(key, "a number", value)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._options.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        raise self._invalid(key, "a boolean", value)

    def get_mapping(self, key: str) -> dict[str, str]:
        """Return a string-to-string mapping stored as a dict or a JSON object string."""
        value = self._options.get(key)
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else {}
            except json.JSONDecodeError as exc:
                raise self._invalid(key, "a JSON object", value) from exc
        if not isinstance(value, Mapping):
            raise self._invalid(key, "a mapping", value)
        return {str(name): str(item) for name, item in value.items()}
