"""Configuration management with Pydantic settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """SourceBridge configuration settings.

    Precedence: descriptor option > CLI flag > environment variable > defaults.
    Descriptor options always win because they describe one concrete source;
    these settings only supply the defaults a descriptor leaves unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOURCEBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Network budgets
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Default HTTP request timeout when HttpTimeoutSeconds is not set",
    )

    connect_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Socket timeout for FTP and SFTP sessions",
    )

    # Kafka defaults
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Bootstrap servers used when KafkaBootstrapServers is not set",
    )

    kafka_consumer_group: str = Field(
        default="file-discovery-service",
        description="Consumer group used when KafkaConsumerGroup is not set",
    )

    kafka_max_messages_to_list: int = Field(
        default=100,
        ge=1,
        description="Maximum messages drained per list call",
    )

    kafka_read_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long a single-record read waits for the broker",
    )

    # Pipeline
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads used when ingesting several files from one source",
    )

    read_chunk_size: int = Field(
        default=65536,
        ge=1024,
        description="Chunk size for buffered reads (cancellation is checked per chunk)",
    )

    log_level: LogLevel = Field(
        default="INFO",
        description="Logging level configured by the CLI",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
