"""Application layer for SourceBridge.

The pipeline composes connectors and converters through their port
interfaces. All transport and parsing side effects live in adapters.
"""

__all__ = [
    "ConnectorRegistry",
    "ConverterRegistry",
    "IngestionOutcome",
    "IngestionPipeline",
    "IngestionReport",
    "IngestionResult",
    "PipelineStage",
]

from sourcebridge.app.pipeline import (
    IngestionOutcome,
    IngestionPipeline,
    IngestionReport,
    IngestionResult,
    PipelineStage,
)
from sourcebridge.app.registry import ConnectorRegistry, ConverterRegistry
