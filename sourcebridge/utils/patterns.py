"""Shell-glob matching applied to file names."""

from __future__ import annotations

import re
from functools import lru_cache

MATCH_ALL_PATTERNS = frozenset({"*", "*.*"})


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern[str]:
    # Only ``*`` and ``?`` are wildcards; everything else is literal.
    translated = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{translated}$", re.IGNORECASE | re.DOTALL)


def matches_pattern(file_name: str, pattern: str | None) -> bool:
    """Return True when ``file_name`` matches the glob ``pattern``.

    Matching is case-insensitive and anchored to the whole name, so
    ``*.csv`` matches ``A.CSV`` but not ``a.csv.bak``. ``*`` and ``*.*``
    (and an empty pattern) match every name, including names without a dot.
    """
    if not pattern or pattern in MATCH_ALL_PATTERNS:
        return True
    return _compile(pattern).match(file_name) is not None
