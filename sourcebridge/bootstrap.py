"""Application bootstrap wiring registries, adapters, and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from sourcebridge.app import ConnectorRegistry, ConverterRegistry, IngestionPipeline
from sourcebridge.app.adapters import (
    CsvConverter,
    ExcelConverter,
    FtpConnector,
    HttpConnector,
    JsonConverter,
    KafkaConnector,
    LocalFileConnector,
    SftpConnector,
    XmlConverter,
)
from sourcebridge.config import Settings, get_settings


@dataclass(slots=True)
class ApplicationContainer:
    """Container exposing the wired registries and pipeline."""

    settings: Settings
    connectors: ConnectorRegistry
    converters: ConverterRegistry
    pipeline: IngestionPipeline


def build_connector_registry(settings: Settings) -> ConnectorRegistry:
    return ConnectorRegistry(
        [
            LocalFileConnector(settings),
            FtpConnector(settings),
            SftpConnector(settings),
            KafkaConnector(settings),
            HttpConnector(settings),
        ]
    )


def build_converter_registry() -> ConverterRegistry:
    return ConverterRegistry(
        [
            JsonConverter(),
            XmlConverter(),
            CsvConverter(),
            ExcelConverter(),
        ]
    )


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Instantiate adapters, registries and the pipeline once per process."""

    active_settings = settings or get_settings()
    connectors = build_connector_registry(active_settings)
    converters = build_converter_registry()
    pipeline = IngestionPipeline(
        connectors=connectors,
        converters=converters,
        settings=active_settings,
    )
    return ApplicationContainer(
        settings=active_settings,
        connectors=connectors,
        converters=converters,
        pipeline=pipeline,
    )
