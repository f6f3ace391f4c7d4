"""Tests for the ingestion pipeline over the local connector."""

import json
from pathlib import Path

import pytest

from sourcebridge.app.ports import SourceDescriptor
from sourcebridge.errors import FormatError, UnsupportedFormatError, UnsupportedSourceTypeError
from sourcebridge.utils.cancellation import CancellationToken


def test_list_then_convert_csv(container, local_descriptor):
    connector = container.connectors.resolve("local")
    references = connector.list(local_descriptor, "*.csv")
    assert references == ["a.csv"]

    result = container.pipeline.ingest(local_descriptor, references[0])

    assert result.canonical_json == '[{"id":"1","name":"Alice"}]'
    assert result.format == "csv"
    assert result.file_metadata.name == "a.csv"
    assert result.conversion_metadata.details["delimiter"] == ","


def test_xml_file_becomes_nested_json(container, local_descriptor):
    result = container.pipeline.ingest(local_descriptor, "items.xml")
    assert json.loads(result.canonical_json) == {"item": ["x", "y"]}
    assert result.conversion_metadata.details["root_element"] == "root"


def test_stages_are_recorded_in_order(container, local_descriptor):
    result = container.pipeline.ingest(local_descriptor, "b.json")

    assert [stage.name for stage in result.stages] == ["read", "describe", "detect", "convert"]
    assert all(stage.status == "completed" for stage in result.stages)
    assert all(stage.duration_seconds is not None for stage in result.stages)
    assert result.stages[0].metrics == {"bytes": len(b'{"id": 1}')}
    assert result.stages[2].detail == "json"


def test_excel_file_is_sniffed(container, temp_dir: Path, xlsx_bytes):
    (temp_dir / "customers.xlsx").write_bytes(xlsx_bytes)
    descriptor = SourceDescriptor(type="local", address=str(temp_dir))

    result = container.pipeline.ingest(descriptor, "customers.xlsx")

    assert result.format == "excel"
    assert json.loads(result.canonical_json)[0]["name"] == "Alice"


def test_format_option_pins_converter(container, source_dir: Path):
    descriptor = SourceDescriptor(type="local", address=str(source_dir), options={"Format": "xml"})
    with pytest.raises(FormatError):
        container.pipeline.ingest(descriptor, "a.csv")


def test_explicit_format_wins_over_option(container, source_dir: Path):
    descriptor = SourceDescriptor(type="local", address=str(source_dir), options={"Format": "xml"})
    result = container.pipeline.ingest(descriptor, "a.csv", source_format="csv")
    assert result.format == "csv"


def test_unrecognized_content_is_unsupported_format(container, local_descriptor):
    with pytest.raises(UnsupportedFormatError):
        container.pipeline.ingest(local_descriptor, "notes.txt")


def test_unknown_source_type(container):
    with pytest.raises(UnsupportedSourceTypeError):
        container.pipeline.ingest(SourceDescriptor(type="gopher", address="x"), "y")


def test_ingest_many_isolates_failures_and_keeps_input_order(container, local_descriptor):
    references = ["a.csv", "missing.csv", "notes.txt", "items.xml"]

    outcomes = container.pipeline.ingest_many(local_descriptor, references)

    assert [outcome.reference for outcome in outcomes] == references
    assert [outcome.status for outcome in outcomes] == ["ingested", "failed", "failed", "ingested"]
    assert outcomes[1].error_kind == "NotFound"
    assert outcomes[2].error_kind == "UnsupportedFormat"
    assert outcomes[0].result is not None
    assert outcomes[1].result is None


def test_ingest_many_with_no_references(container, local_descriptor):
    assert container.pipeline.ingest_many(local_descriptor, []) == []


def test_cancelled_batch_reports_cancelled_outcomes(container, local_descriptor):
    token = CancellationToken()
    token.cancel()

    outcomes = container.pipeline.ingest_many(local_descriptor, ["a.csv", "b.json"], cancel=token)

    assert {outcome.error_kind for outcome in outcomes} == {"Cancelled"}


def test_run_lists_and_ingests(container, local_descriptor):
    report = container.pipeline.run(local_descriptor, "*")

    by_reference = {outcome.reference: outcome for outcome in report.outcomes}
    assert set(by_reference) == {"a.csv", "b.json", "items.xml", "notes.txt"}
    assert report.ingested_count == 3
    assert report.failed_count == 1
    assert by_reference["notes.txt"].error_kind == "UnsupportedFormat"
    assert report.finished_at >= report.started_at


def test_run_on_missing_directory_is_empty(container, temp_dir: Path):
    descriptor = SourceDescriptor(type="local", address=str(temp_dir / "nowhere"))
    report = container.pipeline.run(descriptor, "*.csv")
    assert report.outcomes == []


def test_corrupt_workbook_fails_alone(container, temp_dir: Path, corrupt_xlsx_bytes):
    (temp_dir / "a.csv").write_text("id,name\n1,Alice\n", encoding="utf-8")
    (temp_dir / "bad.xlsx").write_bytes(corrupt_xlsx_bytes)
    descriptor = SourceDescriptor(type="local", address=str(temp_dir))

    report = container.pipeline.run(descriptor, "*")

    by_reference = {outcome.reference: outcome for outcome in report.outcomes}
    assert by_reference["a.csv"].ok
    assert by_reference["bad.xlsx"].error_kind == "UnsupportedFormat"

    pinned = container.pipeline.ingest_many(descriptor, ["bad.xlsx", "a.csv"], source_format="excel")
    assert pinned[0].error_kind == "FormatError"
    assert pinned[1].error_kind == "FormatError"


def test_unexpected_error_becomes_failed_outcome(container, local_descriptor, monkeypatch):
    def explode(stream, hints=None):
        raise RuntimeError("converter crashed")

    monkeypatch.setattr(container.converters.resolve("csv"), "convert", explode)

    outcomes = container.pipeline.ingest_many(local_descriptor, ["a.csv", "b.json"])

    assert outcomes[0].status == "failed"
    assert outcomes[0].error_kind == "Error"
    assert "RuntimeError: converter crashed" in outcomes[0].error
    assert outcomes[1].ok
