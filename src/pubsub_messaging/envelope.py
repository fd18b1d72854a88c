"""Envelope and PublishReceipt — immutable wire-level value objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TIMESTAMP_ATTRIBUTE = "timestamp"
ORIGIN_ATTRIBUTE = "origin"
DEFAULT_ORIGIN = "python-publisher"


class Envelope(BaseModel):
    """Serialized payload bytes plus string attributes sent over the wire.

    Attributes produced by :class:`~pubsub_messaging.codec.Codec` always carry
    ``timestamp`` (ISO-8601) and ``origin``.
    """

    model_config = ConfigDict(frozen=True)

    data: bytes
    attributes: dict[str, str] = Field(default_factory=dict)

    @property
    def timestamp(self) -> str | None:
        return self.attributes.get(TIMESTAMP_ATTRIBUTE)

    @property
    def origin(self) -> str | None:
        return self.attributes.get(ORIGIN_ATTRIBUTE)


class PublishReceipt(BaseModel):
    """Broker-assigned identifier of one published envelope."""

    model_config = ConfigDict(frozen=True)

    message_id: str
