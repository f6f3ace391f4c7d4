"""Ingestion pipeline composing connectors and converters."""

from __future__ import annotations

import io
import logging
import time
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from sourcebridge.app.ports import (
    ConversionMetadata,
    ConverterPort,
    FileMetadata,
    SourceDescriptor,
)
from sourcebridge.app.registry import ConnectorRegistry, ConverterRegistry
from sourcebridge.config import Settings
from sourcebridge.errors import SourceBridgeError
from sourcebridge.utils.cancellation import CancellationToken, ensure_token

logger = logging.getLogger(__name__)

StageStatus = Literal["pending", "completed", "skipped", "failed"]
OutcomeStatus = Literal["ingested", "failed"]


@dataclass(slots=True)
class PipelineStage:
    """Represents the status of one step of a file's ingestion."""

    name: str
    status: StageStatus = "pending"
    detail: str | None = None
    duration_seconds: float | None = None
    metrics: dict[str, Any] | None = None


class IngestionResult(BaseModel):
    """Canonical JSON for one file plus the provenance needed downstream."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source_type: str
    source_address: str
    reference: str
    format: str
    canonical_json: str
    file_metadata: FileMetadata
    conversion_metadata: ConversionMetadata
    stages: list[PipelineStage] = Field(default_factory=list)


class IngestionOutcome(BaseModel):
    """Per-file result of a batch: either an ingested result or a failure."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    reference: str
    status: OutcomeStatus
    result: IngestionResult | None = None
    error_kind: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ingested"


class IngestionReport(BaseModel):
    """Summary of ingesting every matching file of one source."""

    source_type: str
    source_address: str
    pattern: str
    started_at: datetime
    finished_at: datetime
    outcomes: list[IngestionOutcome] = Field(default_factory=list)

    @property
    def ingested_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed_count(self) -> int:
        return len(self.outcomes) - self.ingested_count


class IngestionPipeline:
    """Orchestrate connector read → format detection → conversion for each file.

    The registries are passed in explicitly; the pipeline keeps no state
    between files, so one file's failure never touches its siblings.
    """

    def __init__(
        self,
        *,
        connectors: ConnectorRegistry,
        converters: ConverterRegistry,
        settings: Settings,
    ) -> None:
        self._connectors = connectors
        self._converters = converters
        self._settings = settings

    @contextmanager
    def _stage(
        self,
        stages: list[PipelineStage],
        name: str,
    ) -> Iterator[PipelineStage]:
        """Context manager to standardize pipeline stage error handling."""

        stage = PipelineStage(name=name)
        stages.append(stage)
        start_time = time.monotonic()
        try:
            yield stage
        except Exception as exc:
            stage.status = "failed"
            stage.detail = str(exc)
            raise
        else:
            if stage.status == "pending":
                stage.status = "completed"
        finally:
            stage.duration_seconds = time.monotonic() - start_time

    def ingest(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        source_format: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> IngestionResult:
        """Read, detect and convert one file.

        ``source_format`` wins over the descriptor's ``Format`` option; with
        neither, the format is sniffed from the content.

        Raises:
            SourceBridgeError: Any connector or converter failure for this file
        """
        token = ensure_token(cancel)
        connector = self._connectors.resolve(descriptor.type)
        stages: list[PipelineStage] = []

        with self._stage(stages, "read") as stage:
            stream = connector.read(descriptor, reference, cancel=token)
            stage.metrics = {"bytes": len(stream.getbuffer())}

        with self._stage(stages, "describe"):
            file_metadata = connector.describe(descriptor, reference, cancel=token)

        token.raise_if_cancelled("Ingestion")
        with self._stage(stages, "detect") as stage:
            converter = self._select_converter(descriptor, stream, source_format)
            stage.detail = converter.format

        with self._stage(stages, "convert") as stage:
            conversion_metadata = converter.extract_metadata(stream)
            canonical_json = converter.convert(stream, conversion_metadata.as_hints())
            stage.metrics = {"json_chars": len(canonical_json)}

        logger.info("Ingested %s from %s as %s", reference, descriptor.address, converter.format)
        return IngestionResult(
            source_type=descriptor.type,
            source_address=descriptor.address,
            reference=reference,
            format=converter.format,
            canonical_json=canonical_json,
            file_metadata=file_metadata,
            conversion_metadata=conversion_metadata,
            stages=stages,
        )

    def _select_converter(
        self,
        descriptor: SourceDescriptor,
        stream: io.BytesIO,
        source_format: str | None,
    ) -> ConverterPort:
        pinned = source_format or descriptor.option_view().get_str("Format")
        if pinned:
            # A pinned format skips sniffing; convert reports malformed content.
            return self._converters.resolve(pinned)
        return self._converters.sniff(stream)

    def ingest_many(
        self,
        descriptor: SourceDescriptor,
        references: Sequence[str],
        *,
        source_format: str | None = None,
        cancel: CancellationToken | None = None,
        max_workers: int | None = None,
    ) -> list[IngestionOutcome]:
        """Ingest every reference, returning one outcome per reference in input order.

        Files run concurrently on a bounded thread pool; a failing file is
        recorded as a failed outcome and never aborts the others. Errors
        outside the taxonomy are reported with the generic ``Error`` kind.
        """
        if not references:
            return []
        token = ensure_token(cancel)
        workers = max(1, min(max_workers or self._settings.max_workers, len(references)))

        def ingest_one(reference: str) -> IngestionOutcome:
            try:
                result = self.ingest(descriptor, reference, source_format=source_format, cancel=token)
            except SourceBridgeError as exc:
                logger.warning("Failed to ingest %s: %s", reference, exc)
                return IngestionOutcome(
                    reference=reference,
                    status="failed",
                    error_kind=exc.kind,
                    error=exc.message,
                )
            except Exception as exc:  # noqa: BLE001 - one file's failure never halts its siblings
                logger.exception("Unexpected failure ingesting %s", reference)
                return IngestionOutcome(
                    reference=reference,
                    status="failed",
                    error_kind=SourceBridgeError.kind,
                    error=f"{type(exc).__name__}: {exc}",
                )
            return IngestionOutcome(reference=reference, status="ingested", result=result)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(ingest_one, references))

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info("Ingested %d of %d files (%d failed)", len(outcomes) - failed, len(outcomes), failed)
        return outcomes

    def run(
        self,
        descriptor: SourceDescriptor,
        pattern: str = "*",
        *,
        source_format: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> IngestionReport:
        """List the source and ingest every matching file.

        Raises:
            SourceBridgeError: If listing itself fails; per-file failures are
                reported in the outcomes instead
        """
        token = ensure_token(cancel)
        started_at = datetime.now(UTC)
        connector = self._connectors.resolve(descriptor.type)
        references = connector.list(descriptor, pattern, cancel=token)
        logger.info("Found %d candidate files at %s", len(references), descriptor.address)

        outcomes = self.ingest_many(descriptor, references, source_format=source_format, cancel=token)
        return IngestionReport(
            source_type=descriptor.type,
            source_address=descriptor.address,
            pattern=pattern,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            outcomes=outcomes,
        )
