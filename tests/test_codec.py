"""Tests for Codec and Envelope."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from pubsub_messaging.clock import ManualClock
from pubsub_messaging.codec import Codec
from pubsub_messaging.envelope import DEFAULT_ORIGIN, Envelope, PublishReceipt
from pubsub_messaging.exceptions import DeserializationError, SerializationError


def test_encode_decode_roundtrip(codec: Codec) -> None:
    payload = {
        "tipo": "pedido",
        "pedidoId": "PED-1",
        "itens": [{"produto": "Notebook", "quantidade": 1, "preco": 3500.0}],
        "ativo": True,
        "desconto": None,
    }
    envelope = codec.encode(payload)
    assert isinstance(envelope.data, bytes)
    assert codec.decode(envelope.data) == payload
    assert codec.decode(envelope) == payload


def test_encode_stamps_timestamp_and_origin(codec: Codec) -> None:
    envelope = codec.encode({"a": 1})
    assert envelope.attributes["timestamp"] == "2024-05-01T12:00:00+00:00"
    assert envelope.attributes["origin"] == DEFAULT_ORIGIN
    assert envelope.timestamp == "2024-05-01T12:00:00+00:00"
    assert envelope.origin == DEFAULT_ORIGIN


def test_encode_is_deterministic_for_fixed_clock(codec: Codec) -> None:
    assert codec.encode({"a": 1, "b": [1, 2]}) == codec.encode({"a": 1, "b": [1, 2]})


@pytest.mark.asyncio
async def test_timestamp_follows_clock(manual_clock: ManualClock) -> None:
    codec = Codec(clock=manual_clock)
    await manual_clock.advance(90)
    assert codec.encode({}).timestamp == "2024-05-01T12:01:30+00:00"


def test_caller_attributes_cannot_override_stamped_keys() -> None:
    codec = Codec("billing-service", clock=ManualClock())
    envelope = codec.encode(
        {"a": 1}, {"origin": "spoofed", "timestamp": "never", "trace": "t-1"}
    )
    assert envelope.attributes["origin"] == "billing-service"
    assert envelope.attributes["timestamp"] != "never"
    assert envelope.attributes["trace"] == "t-1"


def test_encode_serializes_datetimes(codec: Codec) -> None:
    when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    envelope = codec.encode({"when": when})
    assert codec.decode(envelope) == {"when": "2024-01-02T03:04:05+00:00"}


def test_encode_keeps_unicode(codec: Codec) -> None:
    envelope = codec.encode({"mensagem": "Olá, São Paulo"})
    assert "São".encode() in envelope.data


def test_encode_cyclic_payload_raises(codec: Codec) -> None:
    payload: dict[str, Any] = {"a": 1}
    payload["self"] = payload
    with pytest.raises(SerializationError) as exc_info:
        codec.encode(payload)
    assert exc_info.value.__cause__ is not None


def test_encode_arbitrary_object_raises(codec: Codec) -> None:
    with pytest.raises(SerializationError, match="not JSON serializable"):
        codec.encode({"obj": object()})


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_encode_non_finite_float_raises(codec: Codec, value: float) -> None:
    with pytest.raises(SerializationError, match="JSON compliant"):
        codec.encode({"v": value})


def test_encode_non_mapping_raises(codec: Codec) -> None:
    with pytest.raises(SerializationError, match="mapping"):
        codec.encode([1, 2, 3])  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "raw",
    [b"not json", b"\xff\xfe", b"", b"[1, 2]", b'"text"', b"42", b"[" * 200000],
    ids=["text", "bad-utf8", "empty", "array", "string", "number", "too-deep"],
)
def test_decode_malformed_raises(codec: Codec, raw: bytes) -> None:
    with pytest.raises(DeserializationError):
        codec.decode(raw)


def test_envelope_is_frozen() -> None:
    envelope = Envelope(data=b"{}", attributes={"origin": "x"})
    with pytest.raises(Exception):  # noqa: B017
        envelope.data = b"[]"  # type: ignore[misc]


def test_publish_receipt() -> None:
    assert PublishReceipt(message_id="42").message_id == "42"
