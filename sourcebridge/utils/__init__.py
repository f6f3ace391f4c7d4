"""Utility modules for common operations."""

from sourcebridge.utils.cancellation import CancellationToken, ensure_token
from sourcebridge.utils.content_types import content_type_for
from sourcebridge.utils.jsonl import atomic_write_jsonl
from sourcebridge.utils.options import DescriptorOptions
from sourcebridge.utils.patterns import matches_pattern

__all__ = [
    "CancellationToken",
    "DescriptorOptions",
    "atomic_write_jsonl",
    "content_type_for",
    "ensure_token",
    "matches_pattern",
]
