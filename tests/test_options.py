"""Tests for typed descriptor option access."""

import pytest
from pydantic import ValidationError

from sourcebridge.app.ports import SourceDescriptor
from sourcebridge.app.ports.connector import describe_options
from sourcebridge.errors import InvalidArgumentError
from sourcebridge.utils.options import DescriptorOptions


def test_missing_options_fall_back_to_defaults():
    options = DescriptorOptions({})
    assert options.get_str("FtpUsername", "anonymous") == "anonymous"
    assert options.get_int("FtpPort", 21) == 21
    assert options.get_float("HttpTimeoutSeconds", 30.0) == 30.0
    assert options.get_bool("FtpUseSsl", False) is False
    assert options.get_mapping("HttpCustomHeaders") == {}
    assert "FtpPort" not in options


def test_string_values_are_coerced():
    options = DescriptorOptions(
        {"FtpPort": "2121", "HttpTimeoutSeconds": "2.5", "FtpUsePassiveMode": "No", "FtpUseSsl": "on"}
    )
    assert options.get_int("FtpPort") == 2121
    assert options.get_float("HttpTimeoutSeconds") == 2.5
    assert options.get_bool("FtpUsePassiveMode", True) is False
    assert options.get_bool("FtpUseSsl", False) is True


def test_invalid_values_name_the_key():
    options = DescriptorOptions({"FtpPort": "twenty-one", "FtpUseSsl": "maybe"}, source="ftp.example.com")

    with pytest.raises(InvalidArgumentError, match="FtpPort") as excinfo:
        options.get_int("FtpPort")
    assert excinfo.value.source == "ftp.example.com"

    with pytest.raises(InvalidArgumentError, match="FtpUseSsl"):
        options.get_bool("FtpUseSsl", False)


def test_booleans_are_not_integers():
    with pytest.raises(InvalidArgumentError):
        DescriptorOptions({"SftpPort": True}).get_int("SftpPort")


def test_mapping_accepts_dict_or_json_object_string():
    assert DescriptorOptions({"H": {"X-Api-Key": "k", "X-Retry": 3}}).get_mapping("H") == {
        "X-Api-Key": "k",
        "X-Retry": "3",
    }
    assert DescriptorOptions({"H": '{"Accept": "text/csv"}'}).get_mapping("H") == {"Accept": "text/csv"}

    with pytest.raises(InvalidArgumentError):
        DescriptorOptions({"H": "not json"}).get_mapping("H")
    with pytest.raises(InvalidArgumentError):
        DescriptorOptions({"H": "[1, 2]"}).get_mapping("H")


def test_descriptor_normalizes_type_and_hides_secrets():
    descriptor = SourceDescriptor(
        type=" SFTP ",
        address="sftp.example.com",
        options={"SftpUsername": "etl", "SftpPassword": "hunter2"},
    )

    assert descriptor.type == "sftp"
    assert "hunter2" not in repr(descriptor)
    assert describe_options(descriptor) == {"SftpUsername": "etl", "SftpPassword": "[MASKED]"}


def test_descriptor_is_immutable():
    descriptor = SourceDescriptor(type="local", address="/data")
    with pytest.raises(ValidationError):
        descriptor.address = "/other"  # type: ignore[misc]
