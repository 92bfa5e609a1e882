#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the tagged binary wire codec.
"""

import struct
from dataclasses import dataclass

import pytest

from easyrmi.core.data.codec import (
    HEADER_SIZE,
    KIND_REPLY,
    KIND_REQUEST,
    WireCodec,
    decode_reply,
    decode_request,
    encode_reply,
    encode_request,
    read_header,
)
from easyrmi.core.data.models import ErrorDescriptor, ReplyFrame, RequestFrame
from easyrmi.core.data.registry import TransmittableRegistry
from easyrmi.core.utils.exceptions import FramingError, SerializationError


@dataclass
class Point:
    x: int
    y: int
    label: str = ""


def _frame(kind: bytes, body: bytes, magic: bytes = b"RM", version: int = 1) -> bytes:
    return magic + bytes([version]) + kind + struct.pack("!I", len(body)) + body


def _call_body(arg: bytes) -> bytes:
    return b"s\x00\x00\x00\x01f" + b"l\x00\x00\x00\x00" + b"l\x00\x00\x00\x01" + arg


_KEY_K = b"s\x00\x00\x00\x01k"


def _int(value: int) -> bytes:
    return b"i" + struct.pack("!q", value)


def test_request_roundtrip_preserves_values_and_types():
    frame = RequestFrame(
        "transfer",
        ("int", "str", "object"),
        (
            42,
            "héllo",
            {"nested": [1, (2, b"\x00\xff")], 7: None},
            True,
            -1.25,
            2 ** 70,
            -(2 ** 63),
        ),
    )

    decoded = decode_request(encode_request(frame))

    assert decoded == frame
    assert isinstance(decoded.args[2]["nested"][1], tuple)
    assert decoded.args[3] is True
    assert decoded.args[5] == 2 ** 70


def test_reply_roundtrip_for_value_unit_and_error():
    descriptor = ErrorDescriptor(
        kind="builtins.ValueError",
        message="bad amount",
        args=("bad amount", 3),
        cause=ErrorDescriptor(kind="builtins.KeyError", message="'acct'", args=("acct",)),
    )

    for reply in (
        ReplyFrame.ok(["Pong", 1]),
        ReplyFrame.ok(None),
        ReplyFrame.ok_unit(),
        ReplyFrame.error(descriptor),
    ):
        assert decode_reply(encode_reply(reply)) == reply

    assert decode_reply(encode_reply(ReplyFrame.ok_unit())).has_payload is False
    assert decode_reply(encode_reply(ReplyFrame.ok(None))).has_payload is True


def test_header_layout_and_read_header():
    data = encode_request(RequestFrame("ping", ("int",), (1,)))

    assert data[:2] == b"RM"
    assert data[2] == 1
    assert data[3] == KIND_REQUEST
    assert read_header(data[:HEADER_SIZE]) == len(data) - HEADER_SIZE
    with pytest.raises(FramingError):
        read_header(data[:HEADER_SIZE], KIND_REPLY)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"RM\x01Q",
        _frame(b"Q", b"N", magic=b"XX"),
        _frame(b"Q", b"N", version=2),
        _frame(b"Z", b"N"),
        _frame(b"R", b"s\x00\x00\x00\x04ping"),
        _frame(b"Q", b"Z"),
        _frame(b"Q", b"s\x00\x00\x00\x02\xff\xfe"),
        _frame(b"Q", b"s\x00\x00\x00\x09pi"),
        _frame(b"Q", b"s\x00\x00\x00\x04pingN"),
        _frame(b"Q", _call_body(b"I\x00\x00\x00\x01\x05")),
        _frame(b"Q", _call_body(b"I\x00\x00\x00\x00")),
        _frame(b"Q", _call_body(b"I\x00\x00\x00\x0a\x00\x00\x80" + bytes(7))),
        _frame(b"Q", _call_body(b"m\x00\x00\x00\x02" + _KEY_K + _int(1) + _KEY_K + _int(2))),
        b"hello, this is not a frame at all",
    ],
)
def test_malformed_request_frames_raise_framing_error(data):
    with pytest.raises(FramingError):
        decode_request(data)


def test_hand_built_canonical_call_bodies_decode():
    bigint = _frame(b"Q", _call_body(b"I\x00\x00\x00\x09\x00\x80" + bytes(7)))
    mapping = _frame(b"Q", _call_body(b"m\x00\x00\x00\x01" + _KEY_K + _int(1)))

    assert decode_request(bigint) == RequestFrame("f", (), (2 ** 63,))
    assert encode_request(RequestFrame("f", (), (2 ** 63,))) == bigint
    assert decode_request(mapping) == RequestFrame("f", (), ({"k": 1},))
    assert encode_request(RequestFrame("f", (), ({"k": 1},))) == mapping


def test_trailing_bytes_inside_declared_body_are_rejected():
    encoded = encode_request(RequestFrame("ping", ("int",), (1,)))
    body = encoded[HEADER_SIZE:] + b"N"

    with pytest.raises(FramingError):
        decode_request(_frame(b"Q", body))

    with pytest.raises(FramingError):
        decode_request(encoded + b"N")


def test_declared_length_above_limit_is_rejected_before_reading_body():
    header = b"RM\x01Q" + struct.pack("!I", 4 * 1024 * 1024 + 1)

    with pytest.raises(FramingError):
        read_header(header, KIND_REQUEST)
    with pytest.raises(FramingError):
        decode_request(header)


def test_max_frame_bytes_cannot_go_below_default():
    with pytest.raises(ValueError):
        WireCodec(max_frame_bytes=1024)

    assert WireCodec(max_frame_bytes=8 * 1024 * 1024).max_frame_bytes == 8 * 1024 * 1024


def test_reply_with_unknown_status_or_bad_error_payload_is_rejected():
    with pytest.raises(FramingError):
        decode_reply(_frame(b"R", b"s\x00\x00\x00\x05MAYBE"))
    with pytest.raises(FramingError):
        decode_reply(_frame(b"R", b"s\x00\x00\x00\x03ERRN"))


def test_unsupported_values_raise_serialization_error_on_encode():
    with pytest.raises(SerializationError):
        encode_request(RequestFrame("f", ("object",), ({1, 2},)))
    with pytest.raises(SerializationError):
        encode_request(RequestFrame("f", ("object",), (object(),)))
    with pytest.raises(SerializationError):
        encode_reply(ReplyFrame("MAYBE", None))


def test_nesting_depth_is_bounded_both_ways():
    nested = []
    for _ in range(100):
        nested = [nested]

    with pytest.raises(SerializationError):
        encode_request(RequestFrame("f", ("object",), (nested,)))

    body = b"l\x00\x00\x00\x01" * 100 + b"N"
    with pytest.raises(FramingError):
        decode_request(_frame(b"Q", body))


def test_transmittable_roundtrip_with_registered_dataclass():
    registry = TransmittableRegistry()
    registry.register(Point, name="geo.Point", version=2)
    codec = WireCodec(registry=registry)
    frame = RequestFrame("move", ("geo.Point",), (Point(1, -2, "origin"),))

    decoded = codec.decode_request(codec.encode_request(frame))

    assert decoded.args[0] == Point(1, -2, "origin")
    assert isinstance(decoded.args[0], Point)


def test_transmittable_version_mismatch_and_unknown_type_are_rejected():
    sender = TransmittableRegistry()
    sender.register(Point, name="geo.Point", version=1)
    receiver = TransmittableRegistry()
    receiver.register(Point, name="geo.Point", version=2)
    data = WireCodec(registry=sender).encode_request(RequestFrame("move", (), (Point(1, 2),)))

    with pytest.raises(FramingError):
        WireCodec(registry=receiver).decode_request(data)
    with pytest.raises(FramingError):
        WireCodec(registry=TransmittableRegistry()).decode_request(data)


def test_unregistered_dataclass_is_not_transmittable():
    with pytest.raises(SerializationError):
        WireCodec(registry=TransmittableRegistry()).encode_request(
            RequestFrame("move", (), (Point(1, 2),))
        )


def test_registry_rejects_non_dataclasses_and_name_clashes():
    registry = TransmittableRegistry()

    with pytest.raises(TypeError):
        registry.register(int)
    with pytest.raises(ValueError):
        registry.register(Point, version=0)

    registry.register(Point, name="shared")

    @dataclass
    class Other:
        value: int

    with pytest.raises(ValueError):
        registry.register(Other, name="shared")
