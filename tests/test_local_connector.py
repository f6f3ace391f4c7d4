"""Tests for the local filesystem connector."""

import os
from pathlib import Path

import pytest

from sourcebridge.app.adapters import LocalFileConnector
from sourcebridge.app.ports import SourceDescriptor
from sourcebridge.errors import NotFoundError, OperationCancelledError
from sourcebridge.utils.cancellation import CancellationToken


def test_list_matches_pattern_on_file_names_only(local_descriptor):
    connector = LocalFileConnector()
    assert connector.list(local_descriptor, "*.csv") == ["a.csv"]


def test_list_all_skips_directories(local_descriptor):
    files = LocalFileConnector().list(local_descriptor, "*.*")
    assert sorted(files) == ["a.csv", "b.json", "items.xml", "notes.txt"]


def test_list_follows_directory_listing_order(local_descriptor, source_dir: Path):
    with os.scandir(source_dir) as entries:
        expected = [entry.name for entry in entries if entry.is_file()]
    assert LocalFileConnector().list(local_descriptor) == expected


def test_list_missing_directory_is_empty(temp_dir: Path):
    descriptor = SourceDescriptor(type="local", address=str(temp_dir / "missing"))
    assert LocalFileConnector().list(descriptor, "*") == []


def test_read_relative_and_absolute_references(local_descriptor, source_dir: Path):
    connector = LocalFileConnector()
    assert connector.read(local_descriptor, "a.csv").read() == b"id,name\n1,Alice\n"
    assert connector.read(local_descriptor, str(source_dir / "b.json")).read() == b'{"id": 1}'


def test_read_returns_stream_at_start(local_descriptor):
    stream = LocalFileConnector().read(local_descriptor, "a.csv")
    assert stream.tell() == 0


def test_read_missing_file_raises_not_found(local_descriptor):
    with pytest.raises(NotFoundError) as excinfo:
        LocalFileConnector().read(local_descriptor, "missing.csv")
    assert excinfo.value.reference == "missing.csv"


def test_read_directory_raises_not_found(local_descriptor):
    with pytest.raises(NotFoundError):
        LocalFileConnector().read(local_descriptor, "archive")


def test_read_honors_cancellation(local_descriptor):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledError):
        LocalFileConnector().read(local_descriptor, "a.csv", cancel=token)


def test_describe(local_descriptor):
    metadata = LocalFileConnector().describe(local_descriptor, "a.csv")

    assert metadata.path == "a.csv"
    assert metadata.name == "a.csv"
    assert metadata.size_bytes == len(b"id,name\n1,Alice\n")
    assert metadata.content_type == "text/csv"
    assert metadata.last_modified_utc.tzinfo is not None
    assert metadata.extra["Permissions"].startswith("-")


def test_describe_missing_raises_not_found(local_descriptor):
    with pytest.raises(NotFoundError):
        LocalFileConnector().describe(local_descriptor, "nope.xml")


def test_describe_directory_raises_not_found(local_descriptor):
    with pytest.raises(NotFoundError):
        LocalFileConnector().describe(local_descriptor, "archive")


def test_test_reports_directory_presence(local_descriptor, temp_dir: Path):
    connector = LocalFileConnector()
    assert connector.test(local_descriptor) is True
    assert connector.test(SourceDescriptor(type="local", address=str(temp_dir / "missing"))) is False


def test_describe_path_through_a_file_raises_not_found(local_descriptor):
    with pytest.raises(NotFoundError):
        LocalFileConnector().describe(local_descriptor, "a.csv/x")
