"""Error taxonomy shared by connectors, converters and the ingestion pipeline."""

from __future__ import annotations


class SourceBridgeError(Exception):
    """Base class for every failure surfaced by SourceBridge.

    Carries the source address and file reference (or format) involved so
    callers can log the failure and decide on retry policy.
    """

    kind = "Error"

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        reference: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.reference = reference

    def __str__(self) -> str:
        context = []
        if self.source:
            context.append(f"source={self.source}")
        if self.reference:
            context.append(f"reference={self.reference}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class NotFoundError(SourceBridgeError):
    """Referenced file, message or endpoint does not exist."""

    kind = "NotFound"


class ConnectorConnectionError(SourceBridgeError):
    """Transport could not be reached or authentication failed."""

    kind = "ConnectionError"


class FormatError(SourceBridgeError):
    """Content does not parse under the declared or sniffed format."""

    kind = "FormatError"


class InvalidArgumentError(SourceBridgeError):
    """Malformed file reference or descriptor option."""

    kind = "InvalidArgument"


class UnsupportedSourceTypeError(SourceBridgeError):
    """No connector is registered for the descriptor type."""

    kind = "UnsupportedSourceType"


class UnsupportedFormatError(SourceBridgeError):
    """No converter is registered for, or accepts, the content format."""

    kind = "UnsupportedFormat"


class OperationTimeoutError(SourceBridgeError):
    """Operation exceeded its configured time budget."""

    kind = "Timeout"


class OperationCancelledError(SourceBridgeError):
    """Caller requested the operation be aborted."""

    kind = "Cancelled"


__all__ = [
    "SourceBridgeError",
    "NotFoundError",
    "ConnectorConnectionError",
    "FormatError",
    "InvalidArgumentError",
    "UnsupportedSourceTypeError",
    "UnsupportedFormatError",
    "OperationTimeoutError",
    "OperationCancelledError",
]
