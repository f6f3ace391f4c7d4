"""CLI integration smoke tests."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from sourcebridge import __version__
from sourcebridge.cli import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_test_command_reports_reachable_directory(override_settings, source_dir: Path):
    result = runner.invoke(app, ["test", "--type", "local", "--address", str(source_dir)])
    assert result.exit_code == 0, result.stdout
    assert "reachable" in result.stdout


def test_test_command_fails_for_missing_directory(override_settings, temp_dir: Path):
    result = runner.invoke(app, ["test", "--type", "local", "--address", str(temp_dir / "missing")])
    assert result.exit_code == 1


def test_list_command(override_settings, source_dir: Path):
    result = runner.invoke(app, ["list", "-t", "local", "-a", str(source_dir), "--pattern", "*.csv"])
    assert result.exit_code == 0, result.stdout
    assert result.stdout.split() == ["a.csv"]


def test_list_command_json(override_settings, source_dir: Path):
    result = runner.invoke(app, ["list", "-t", "local", "-a", str(source_dir), "-p", "*.xml", "--json"])
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["schema_id"] == "file_list"
    assert payload["files"] == ["items.xml"]


def test_describe_command(override_settings, source_dir: Path):
    result = runner.invoke(app, ["describe", "b.json", "-t", "local", "-a", str(source_dir)])
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["name"] == "b.json"
    assert payload["content_type"] == "application/json"


def test_describe_missing_file_exits_with_error(override_settings, source_dir: Path):
    result = runner.invoke(app, ["describe", "nope.csv", "-t", "local", "-a", str(source_dir)])
    assert result.exit_code == 1


def test_unknown_source_type_exits_with_error(override_settings, source_dir: Path):
    result = runner.invoke(app, ["list", "-t", "gopher", "-a", str(source_dir)])
    assert result.exit_code == 1


def test_malformed_option_is_rejected(override_settings, source_dir: Path):
    result = runner.invoke(app, ["list", "-t", "local", "-a", str(source_dir), "--option", "novalue"])
    assert result.exit_code != 0


def test_ingest_writes_jsonl_outcomes(override_settings, source_dir: Path, temp_dir: Path):
    output = temp_dir / "out" / "outcomes.jsonl"

    result = runner.invoke(
        app,
        ["ingest", "-t", "local", "-a", str(source_dir), "--pattern", "*.csv", "--output", str(output)],
    )

    assert result.exit_code == 0, result.stdout
    lines = output.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["schema_id"] == "ingestion_outcome"
    assert record["status"] == "ingested"
    assert record["result"]["canonical_json"] == '[{"id":"1","name":"Alice"}]'


def test_ingest_exits_nonzero_when_a_file_fails(override_settings, source_dir: Path):
    result = runner.invoke(app, ["ingest", "-t", "local", "-a", str(source_dir), "a.csv", "notes.txt"])

    assert result.exit_code == 1
    assert "Ingested 1 of 2 files" in result.stdout


def test_ingest_with_forced_format(override_settings, source_dir: Path):
    result = runner.invoke(app, ["ingest", "-t", "local", "-a", str(source_dir), "items.xml", "--format", "xml"])
    assert result.exit_code == 0, result.stdout
    first = json.loads(result.stdout.splitlines()[0])
    assert json.loads(first["result"]["canonical_json"]) == {"item": ["x", "y"]}
