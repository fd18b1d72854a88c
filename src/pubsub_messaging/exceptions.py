"""Exceptions and warnings for pubsub-messaging."""

from __future__ import annotations


class PubSubError(Exception):
    """Root exception for the entire pubsub-messaging package."""


class ConfigurationError(PubSubError):
    """Raised when a required setup value is missing or invalid.

    Always raised before any broker interaction takes place.
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        self.missing = missing or []
        super().__init__(message)


class MessagingError(PubSubError):
    """Base class for all messaging-related errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class SerializationError(MessagingError):
    """Raised when a payload cannot be serialized to bytes."""


class DeserializationError(MessagingError):
    """Raised when received bytes are not a well-formed serialized payload."""


class PublishError(MessagingError):
    """Raised when the broker rejects a publish or the transport fails.

    ``failed_index`` is set by batch publication to the position of the
    payload that failed; it is ``None`` for single publishes.
    """

    def __init__(self, message: str, failed_index: int | None = None) -> None:
        self.failed_index = failed_index
        super().__init__(message)


class ProcessingError(MessagingError):
    """Raised by message processing code to request a local retry."""


class DoubleResolutionWarning(RuntimeWarning):
    """Emitted when a handler resolves an already acked/nacked delivery."""
