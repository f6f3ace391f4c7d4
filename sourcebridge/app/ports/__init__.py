"""Port interfaces for the SourceBridge application layer.

These protocol interfaces define contracts for adapters.
The pipeline depends on these ports, never on concrete implementations.
"""

__all__ = [
    "SOURCE_TYPES",
    "FORMAT_TAGS",
    "ConnectorPort",
    "ConverterPort",
    "ConversionMetadata",
    "FileMetadata",
    "SourceDescriptor",
]

from sourcebridge.app.ports.connector import (
    SOURCE_TYPES,
    ConnectorPort,
    FileMetadata,
    SourceDescriptor,
)
from sourcebridge.app.ports.converter import FORMAT_TAGS, ConversionMetadata, ConverterPort
