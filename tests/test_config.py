"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from sourcebridge.config import Settings, get_settings, set_settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.http_timeout_seconds == 30.0
    assert settings.kafka_bootstrap_servers == "localhost:9092"
    assert settings.kafka_consumer_group == "file-discovery-service"
    assert settings.kafka_max_messages_to_list == 100
    assert settings.max_workers == 4
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SOURCEBRIDGE_KAFKA_BOOTSTRAP_SERVERS", "broker-1:9092,broker-2:9092")
    monkeypatch.setenv("SOURCEBRIDGE_MAX_WORKERS", "8")

    settings = Settings(_env_file=None)

    assert settings.kafka_bootstrap_servers == "broker-1:9092,broker-2:9092"
    assert settings.max_workers == 8


def test_rejects_invalid_values():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_workers=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, http_timeout_seconds=-1)


def test_set_settings_replaces_process_default(override_settings):
    replacement = Settings(_env_file=None, max_workers=1)
    set_settings(replacement)
    assert get_settings() is replacement
