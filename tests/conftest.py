"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
import time
from collections.abc import Generator
from pathlib import Path

import pytest

from sourcebridge.app.ports import SourceDescriptor
from sourcebridge.bootstrap import ApplicationContainer, bootstrap_application
from sourcebridge.config import Settings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Force garbage collection to release any file handles
        gc.collect()
        # Small delay to allow OS to release file locks
        time.sleep(0.1)
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def isolated_settings() -> Settings:
    """Settings with short network budgets so failure paths stay fast."""
    return Settings(
        _env_file=None,
        http_timeout_seconds=2.0,
        connect_timeout_seconds=2.0,
        kafka_read_timeout_seconds=0.5,
        max_workers=2,
    )


@pytest.fixture
def override_settings(isolated_settings: Settings) -> Generator[Settings, None, None]:
    """Install isolated settings as the process default for CLI tests."""

    import sourcebridge.config as config_module

    original_settings = getattr(config_module, "_settings", None)
    config_module._settings = isolated_settings
    try:
        yield isolated_settings
    finally:
        config_module._settings = original_settings


@pytest.fixture
def container(isolated_settings: Settings) -> ApplicationContainer:
    """Fully wired registries and pipeline."""
    return bootstrap_application(isolated_settings)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Directory holding one file per supported format plus a subdirectory."""
    directory = temp_dir / "incoming"
    directory.mkdir()
    (directory / "a.csv").write_text("id,name\n1,Alice\n", encoding="utf-8")
    (directory / "b.json").write_text('{"id": 1}', encoding="utf-8")
    (directory / "items.xml").write_text("<root><item>x</item><item>y</item></root>", encoding="utf-8")
    (directory / "notes.txt").write_text("plain text without structure", encoding="utf-8")
    (directory / "archive").mkdir()
    (directory / "archive" / "old.csv").write_text("id\n9\n", encoding="utf-8")
    return directory


@pytest.fixture
def local_descriptor(source_dir: Path) -> SourceDescriptor:
    return SourceDescriptor(type="local", address=str(source_dir))


@pytest.fixture
def xlsx_bytes() -> bytes:
    """A two-row workbook built with openpyxl."""
    import io
    from datetime import datetime

    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Customers"
    sheet.append(["id", "name", "joined", "active"])
    sheet.append([1, "Alice", datetime(2024, 1, 15, 9, 30), True])
    sheet.append([2, "Bob", None, False])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def corrupt_xlsx_bytes(xlsx_bytes: bytes) -> bytes:
    """A zip-valid workbook whose first worksheet part is truncated XML."""
    import io
    import zipfile

    source = zipfile.ZipFile(io.BytesIO(xlsx_bytes))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = b"<worksheet><sheetData><row>"
            target.writestr(item, data)
    return buffer.getvalue()
