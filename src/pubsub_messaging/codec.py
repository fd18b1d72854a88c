"""Codec — JSON payload <-> Envelope roundtrip with timestamp and origin stamping."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .clock import SystemClock
from .envelope import (
    DEFAULT_ORIGIN,
    ORIGIN_ATTRIBUTE,
    TIMESTAMP_ATTRIBUTE,
    Envelope,
)
from .exceptions import DeserializationError, SerializationError

if TYPE_CHECKING:
    from .clock import Clock

Payload = dict[str, Any]


def _json_serializer(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class Codec:
    """Serialize payload mappings to :class:`Envelope` and back.

    The payload is treated opaquely: any mapping whose values the JSON encoder
    accepts (plus ``datetime``/``date`` values) is valid. Key order is not part
    of the contract.
    """

    def __init__(
        self,
        origin: str = DEFAULT_ORIGIN,
        *,
        clock: Clock | None = None,
    ) -> None:
        """Configure the origin tag and the clock used for ``timestamp``."""
        self._origin = origin
        self._clock = clock or SystemClock()

    @property
    def origin(self) -> str:
        return self._origin

    def encode(
        self,
        payload: Mapping[str, Any],
        attributes: Mapping[str, str] | None = None,
    ) -> Envelope:
        """Encode *payload* to JSON bytes and stamp ``timestamp``/``origin``.

        Caller-supplied *attributes* are kept, but never override the stamped
        keys.
        """
        if not isinstance(payload, Mapping):
            raise SerializationError(
                f"Payload must be a mapping, got {type(payload).__name__}"
            )
        try:
            data = json.dumps(
                dict(payload),
                default=_json_serializer,
                ensure_ascii=False,
                allow_nan=False,
            ).encode("utf-8")
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(str(e)) from e

        attrs = {str(k): str(v) for k, v in (attributes or {}).items()}
        attrs[TIMESTAMP_ATTRIBUTE] = self._clock.now().isoformat()
        attrs[ORIGIN_ATTRIBUTE] = self._origin
        return Envelope(data=data, attributes=attrs)

    def decode(self, envelope: Envelope | bytes | bytearray | memoryview) -> Payload:
        """Decode envelope bytes back to a payload mapping."""
        raw = envelope.data if isinstance(envelope, Envelope) else envelope
        try:
            data = json.loads(bytes(raw).decode("utf-8"))
        except (TypeError, ValueError, RecursionError) as e:
            raise DeserializationError(str(e)) from e
        if not isinstance(data, dict):
            raise DeserializationError(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        return data
