"""Connector treating Kafka topic messages as files."""

from __future__ import annotations

import io
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from confluent_kafka import Consumer, KafkaError, KafkaException, Message, TopicPartition
from confluent_kafka.admin import AdminClient

from sourcebridge.app.ports import ConnectorPort, FileMetadata, SourceDescriptor
from sourcebridge.config import Settings
from sourcebridge.errors import (
    ConnectorConnectionError,
    InvalidArgumentError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
)
from sourcebridge.utils.cancellation import CancellationToken, ensure_token

logger = logging.getLogger(__name__)

# Fixed ceiling for one list poll; an empty window ends the listing.
LIST_POLL_TIMEOUT_SECONDS = 5.0
# Granularity at which blocking polls re-check cancellation.
_POLL_SLICE_SECONDS = 0.25

_MISSING_RECORD_ERRORS = {
    KafkaError._PARTITION_EOF,
    KafkaError._AUTO_OFFSET_RESET,
    KafkaError.OFFSET_OUT_OF_RANGE,
    KafkaError.UNKNOWN_TOPIC_OR_PART,
    KafkaError._UNKNOWN_PARTITION,
    KafkaError._UNKNOWN_TOPIC,
}


@dataclass(frozen=True, slots=True)
class KafkaReference:
    """A ``topic:partition:offset`` message reference."""

    topic: str
    partition: int
    offset: int

    def __str__(self) -> str:
        return f"{self.topic}:{self.partition}:{self.offset}"


def parse_reference(reference: str, *, source: str | None = None) -> KafkaReference:
    """Parse ``topic:partition:offset``.

    Raises:
        InvalidArgumentError: Unless there are exactly three parts with a
            non-empty topic and non-negative integer partition and offset.
    """
    parts = reference.split(":")
    if len(parts) != 3:
        raise InvalidArgumentError(
            "Kafka reference must be in format 'topic:partition:offset'",
            source=source,
            reference=reference,
        )
    topic, partition, offset = parts
    if not topic or not partition.isdigit() or not offset.isdigit():
        raise InvalidArgumentError(
            "Kafka reference needs a topic and non-negative integer partition and offset",
            source=source,
            reference=reference,
        )
    return KafkaReference(topic=topic, partition=int(partition), offset=int(offset))


@dataclass(frozen=True, slots=True)
class KafkaConfig:
    bootstrap_servers: str
    consumer_group: str
    max_messages_to_list: int
    read_timeout_seconds: float


class KafkaConnector(ConnectorPort):
    """Adapter reading individual Kafka records as files.

    Options: ``KafkaBootstrapServers``, ``KafkaConsumerGroup``,
    ``KafkaMaxMessagesToList``, ``KafkaReadTimeoutSeconds``. The descriptor
    address is the topic name. Offsets are never committed, so reads and
    listings are repeatable.
    """

    source_type = "kafka"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    def _config(self, descriptor: SourceDescriptor) -> KafkaConfig:
        options = descriptor.option_view()
        settings = self._settings
        max_messages = options.get_int("KafkaMaxMessagesToList", settings.kafka_max_messages_to_list)
        if max_messages is None or max_messages < 1:
            raise InvalidArgumentError(
                f"Option KafkaMaxMessagesToList must be positive, got {max_messages!r}",
                source=descriptor.address,
            )
        return KafkaConfig(
            bootstrap_servers=options.get_str("KafkaBootstrapServers", settings.kafka_bootstrap_servers)
            or settings.kafka_bootstrap_servers,
            consumer_group=options.get_str("KafkaConsumerGroup", settings.kafka_consumer_group)
            or settings.kafka_consumer_group,
            max_messages_to_list=max_messages,
            read_timeout_seconds=options.get_float("KafkaReadTimeoutSeconds", settings.kafka_read_timeout_seconds)
            or settings.kafka_read_timeout_seconds,
        )

    @contextmanager
    def _consumer(self, settings: dict[str, Any]) -> Iterator[Consumer]:
        consumer = Consumer(settings)
        try:
            yield consumer
        finally:
            consumer.close()

    @staticmethod
    def _poll(consumer: Consumer, timeout: float, token: CancellationToken, what: str) -> Message | None:
        """Poll up to ``timeout`` seconds in short slices, honoring cancellation."""
        deadline = time.monotonic() + timeout
        while True:
            token.raise_if_cancelled(what)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            message = consumer.poll(min(_POLL_SLICE_SECONDS, remaining))
            if message is not None:
                return message

    def read(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> io.BytesIO:
        token = ensure_token(cancel)
        ref = parse_reference(reference, source=descriptor.address)
        config = self._config(descriptor)
        logger.info("Reading Kafka record: %s", ref)

        consumer_settings = {
            "bootstrap.servers": config.bootstrap_servers,
            "group.id": config.consumer_group,
            "enable.auto.commit": False,
            "enable.partition.eof": True,
            # Report a missing offset instead of silently jumping elsewhere.
            "auto.offset.reset": "error",
        }

        try:
            with self._consumer(consumer_settings) as consumer:
                consumer.assign([TopicPartition(ref.topic, ref.partition, ref.offset)])
                message = self._poll(consumer, config.read_timeout_seconds, token, "Kafka read")
        except KafkaException as exc:
            raise ConnectorConnectionError(
                f"Kafka read failed: {exc}", source=descriptor.address, reference=reference
            ) from exc

        if message is None:
            raise OperationTimeoutError(
                f"No record received within {config.read_timeout_seconds}s",
                source=descriptor.address,
                reference=reference,
            )

        error = message.error()
        if error is not None:
            if error.code() in _MISSING_RECORD_ERRORS:
                raise NotFoundError(f"No message found: {error.str()}", source=descriptor.address, reference=reference)
            raise ConnectorConnectionError(
                f"Kafka read failed: {error.str()}", source=descriptor.address, reference=reference
            )

        if message.offset() != ref.offset:
            raise NotFoundError(
                f"No message found at offset {ref.offset} (next is {message.offset()})",
                source=descriptor.address,
                reference=reference,
            )

        return io.BytesIO(message.value() or b"")

    def list(
        self,
        descriptor: SourceDescriptor,
        pattern: str = "*",
        *,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """Drain up to the configured number of new messages from the topic.

        ``pattern`` is ignored; topics have no file names. Stops early on an
        empty poll window or on cancellation.
        """
        token = ensure_token(cancel)
        topic = descriptor.address
        config = self._config(descriptor)
        consumer_settings = {
            "bootstrap.servers": config.bootstrap_servers,
            "group.id": config.consumer_group,
            "enable.auto.commit": False,
            "auto.offset.reset": "latest",
        }

        references: list[str] = []
        try:
            with self._consumer(consumer_settings) as consumer:
                consumer.subscribe([topic])
                while len(references) < config.max_messages_to_list:
                    try:
                        message = self._poll(consumer, LIST_POLL_TIMEOUT_SECONDS, token, "Kafka list")
                    except OperationCancelledError:
                        logger.info("Kafka listing cancelled after %d messages", len(references))
                        break
                    if message is None:
                        break
                    error = message.error()
                    if error is not None:
                        if error.code() == KafkaError._PARTITION_EOF:
                            break
                        raise ConnectorConnectionError(
                            f"Kafka poll failed: {error.str()}", source=descriptor.address
                        )
                    references.append(str(KafkaReference(message.topic(), message.partition(), message.offset())))
        except KafkaException as exc:
            raise ConnectorConnectionError(f"Kafka list failed: {exc}", source=descriptor.address) from exc

        logger.info("Listed %d messages from Kafka topic: %s", len(references), topic)
        return references

    def test(
        self,
        descriptor: SourceDescriptor,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        try:
            ensure_token(cancel).raise_if_cancelled("Kafka test")
            config = self._config(descriptor)
            logger.info("Testing Kafka connection to: %s", config.bootstrap_servers)
            admin = AdminClient({"bootstrap.servers": config.bootstrap_servers})
            metadata = admin.list_topics(timeout=LIST_POLL_TIMEOUT_SECONDS)
        except Exception as exc:  # noqa: BLE001 - test reports failure instead of raising
            logger.error("Kafka connection test failed: %s", exc)
            return False

        logger.info("Kafka connection test successful. Found %d brokers", len(metadata.brokers))
        return True

    def describe(
        self,
        descriptor: SourceDescriptor,
        reference: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> FileMetadata:
        """Describe a message without consuming it; size stays 0 until read."""
        ensure_token(cancel).raise_if_cancelled("Kafka describe")
        ref = parse_reference(reference, source=descriptor.address)
        return FileMetadata(
            path=reference,
            name=f"kafka-msg-{ref.offset}",
            size_bytes=0,
            last_modified_utc=datetime.now(UTC),
            content_type="application/json",
            extra={
                "KafkaTopic": ref.topic,
                "KafkaPartition": str(ref.partition),
                "KafkaOffset": str(ref.offset),
            },
        )
