#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRMI wire codec.

Frame layout (all integers big-endian)::

    +-------+---------+------+-------------+------------------+
    | "RM"  | version | kind | body length | body             |
    | 2 B   | u8      | u8   | u32         | body length B    |
    +-------+---------+------+-------------+------------------+

``kind`` is ``Q`` for a request and ``R`` for a reply. A request body is three
tagged values: the selector string, the list of parameter type descriptors
and the list of arguments. A reply body is the status string (``OK`` or
``ERR``) followed by the return value, nothing (unit return), or an error
descriptor.

Every value starts with a one-byte tag. Strings are UTF-8 and, like bytes and
containers, carry a u32 length or element count. Decoding is strict: unknown
tags, truncation, trailing bytes, oversized frames and malformed payloads all
raise :class:`FramingError`.
"""

import struct
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_MAX_FRAME_BYTES, MIN_MAX_FRAME_BYTES
from ..utils.exceptions import FramingError, SerializationError
from .models import (
    STATUS_ERR,
    STATUS_OK,
    Endpoint,
    ErrorDescriptor,
    ReplyFrame,
    RequestFrame,
)
from .registry import TransmittableRegistry, default_registry

MAGIC = b"RM"
WIRE_VERSION = 1
KIND_REQUEST = ord("Q")
KIND_REPLY = ord("R")

_HEADER = struct.Struct("!2sBBI")
HEADER_SIZE = _HEADER.size

_U32 = struct.Struct("!I")
_I64 = struct.Struct("!q")
_F64 = struct.Struct("!d")

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

MAX_NESTING_DEPTH = 64

TAG_NONE = b"N"
TAG_TRUE = b"T"
TAG_FALSE = b"F"
TAG_INT = b"i"
TAG_BIGINT = b"I"
TAG_FLOAT = b"d"
TAG_STR = b"s"
TAG_BYTES = b"b"
TAG_LIST = b"l"
TAG_TUPLE = b"t"
TAG_DICT = b"m"
TAG_OBJECT = b"o"
TAG_REMOTE = b"r"
TAG_ERROR = b"e"

_KIND_NAMES = {KIND_REQUEST: "request", KIND_REPLY: "reply"}


class _Encoder:
    def __init__(self, registry: TransmittableRegistry) -> None:
        self._registry = registry
        self._out = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._out)

    def _u32(self, value: int) -> None:
        if value > 0xFFFFFFFF:
            raise SerializationError("Length does not fit in u32", operation="encode")
        self._out += _U32.pack(value)

    def _str(self, value: str) -> None:
        try:
            raw = value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise SerializationError(
                "String is not valid UTF-8",
                operation="encode",
                data_type="str",
                cause=exc,
            ) from exc
        self._u32(len(raw))
        self._out += raw

    def write_value(self, value: Any, depth: int = 0) -> None:
        if depth > MAX_NESTING_DEPTH:
            raise SerializationError("Value nesting is too deep", operation="encode")

        value_type = type(value)
        if value is None:
            self._out += TAG_NONE
        elif value_type is bool:
            self._out += TAG_TRUE if value else TAG_FALSE
        elif value_type is int:
            self._write_int(value)
        elif value_type is float:
            self._out += TAG_FLOAT
            self._out += _F64.pack(value)
        elif value_type is str:
            self._out += TAG_STR
            self._str(value)
        elif value_type in (bytes, bytearray, memoryview):
            raw = bytes(value)
            self._out += TAG_BYTES
            self._u32(len(raw))
            self._out += raw
        elif value_type is list or value_type is tuple:
            self._out += TAG_LIST if value_type is list else TAG_TUPLE
            self._u32(len(value))
            for item in value:
                self.write_value(item, depth + 1)
        elif value_type is dict:
            self._out += TAG_DICT
            self._u32(len(value))
            for key, item in value.items():
                self.write_value(key, depth + 1)
                self.write_value(item, depth + 1)
        elif value_type is ErrorDescriptor:
            self.write_error(value, depth)
        else:
            self._write_reference_or_object(value, depth)

    def _write_int(self, value: int) -> None:
        if _INT64_MIN <= value <= _INT64_MAX:
            self._out += TAG_INT
            self._out += _I64.pack(value)
            return
        length = (value.bit_length() + 8) // 8
        self._out += TAG_BIGINT
        self._u32(length)
        self._out += value.to_bytes(length, "big", signed=True)

    def _write_reference_or_object(self, value: Any, depth: int) -> None:
        from ..nodes.stub import stub_handle

        handle = stub_handle(value)
        if handle is not None:
            wire_name = handle.interface.wire_name
            if wire_name is None:
                raise SerializationError(
                    "Stub interface is not registered for transmission; "
                    "decorate it with @remote_interface",
                    operation="encode",
                    data_type=handle.interface.name,
                )
            self._out += TAG_REMOTE
            self._str(wire_name)
            self.write_value(handle.endpoint.host, depth + 1)
            self.write_value(handle.endpoint.port, depth + 1)
            return

        entry = self._registry.by_class(type(value))
        if entry is None:
            raise SerializationError(
                "Type '{0}' is not transmittable".format(type(value).__qualname__),
                operation="encode",
                data_type=type(value).__qualname__,
            )
        self._out += TAG_OBJECT
        self._str(entry.name)
        self._u32(entry.version)
        self._u32(len(entry.field_names))
        for name in entry.field_names:
            self._str(name)
            self.write_value(getattr(value, name), depth + 1)

    def write_error(self, descriptor: ErrorDescriptor, depth: int = 0) -> None:
        if depth > MAX_NESTING_DEPTH:
            raise SerializationError("Error cause chain is too deep", operation="encode")
        self._out += TAG_ERROR
        self._str(descriptor.kind)
        self._str(descriptor.message)
        self.write_value(tuple(descriptor.args), depth + 1)
        if descriptor.cause is None:
            self._out += TAG_NONE
        else:
            self.write_error(descriptor.cause, depth + 1)


class _Decoder:
    def __init__(self, data: memoryview, registry: TransmittableRegistry) -> None:
        self._data = data
        self._pos = 0
        self._registry = registry

    @property
    def at_end(self) -> bool:
        return self._pos == len(self._data)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise FramingError("Truncated frame body")
        chunk = self._data[self._pos:end].tobytes()
        self._pos = end
        return chunk

    def _u32(self) -> int:
        return _U32.unpack(self._take(_U32.size))[0]

    def _count(self) -> int:
        count = self._u32()
        if count > self.remaining:
            raise FramingError("Element count exceeds frame body", count=count)
        return count

    def _str(self) -> str:
        raw = self._take(self._u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FramingError("String is not valid UTF-8", cause=exc) from exc

    def read_value(self, depth: int = 0) -> Any:
        if depth > MAX_NESTING_DEPTH:
            raise FramingError("Value nesting is too deep")

        tag = self._take(1)
        if tag == TAG_NONE:
            return None
        if tag == TAG_TRUE:
            return True
        if tag == TAG_FALSE:
            return False
        if tag == TAG_INT:
            return _I64.unpack(self._take(_I64.size))[0]
        if tag == TAG_BIGINT:
            return self._read_bigint()
        if tag == TAG_FLOAT:
            return _F64.unpack(self._take(_F64.size))[0]
        if tag == TAG_STR:
            return self._str()
        if tag == TAG_BYTES:
            return self._take(self._u32())
        if tag == TAG_LIST or tag == TAG_TUPLE:
            items = [self.read_value(depth + 1) for _ in range(self._count())]
            return items if tag == TAG_LIST else tuple(items)
        if tag == TAG_DICT:
            return self._read_dict(depth)
        if tag == TAG_OBJECT:
            return self._read_object(depth)
        if tag == TAG_REMOTE:
            return self._read_remote(depth)
        if tag == TAG_ERROR:
            return self.read_error_body(depth)
        raise FramingError("Unknown value tag {0!r}".format(tag))

    def _read_bigint(self) -> int:
        length = self._u32()
        value = int.from_bytes(self._take(length), "big", signed=True)
        if _INT64_MIN <= value <= _INT64_MAX:
            raise FramingError("Big integer within int64 range", value=value)
        if length != (value.bit_length() + 8) // 8:
            raise FramingError("Big integer is not minimally encoded", length=length)
        return value

    def _read_dict(self, depth: int) -> Dict[Any, Any]:
        result: Dict[Any, Any] = {}
        for _ in range(self._count()):
            key = self.read_value(depth + 1)
            value = self.read_value(depth + 1)
            try:
                duplicate = key in result
            except TypeError as exc:
                raise FramingError("Unhashable dictionary key", cause=exc) from exc
            if duplicate:
                raise FramingError("Duplicate dictionary key")
            result[key] = value
        return result

    def _read_object(self, depth: int) -> Any:
        name = self._str()
        version = self._u32()
        entry = self._registry.by_name(name)
        if entry is None:
            raise FramingError("Unknown transmittable type", type_name=name)
        if version != entry.version:
            raise FramingError(
                "Transmittable type version mismatch",
                type_name=name,
                expected=entry.version,
                received=version,
            )

        fields: Dict[str, Any] = {}
        for _ in range(self._count()):
            field_name = self._str()
            if field_name in fields:
                raise FramingError(
                    "Duplicate transmittable field", type_name=name, field=field_name
                )
            fields[field_name] = self.read_value(depth + 1)
        if set(fields) != set(entry.field_names):
            raise FramingError("Transmittable type fields do not match", type_name=name)

        try:
            return entry.cls(**fields)
        except Exception as exc:
            raise FramingError(
                "Transmittable type rejected decoded fields",
                cause=exc,
                type_name=name,
            ) from exc

    def _read_remote(self, depth: int) -> Any:
        from ..interface import lookup_interface
        from ..nodes.stub import make_stub

        name = self._str()
        host = self.read_value(depth + 1)
        port = self.read_value(depth + 1)
        if host is not None and not isinstance(host, str):
            raise FramingError("Remote reference host must be a string")
        descriptor = lookup_interface(name)
        if descriptor is None:
            raise FramingError("Unknown remote interface", interface=name)
        try:
            endpoint = Endpoint(host, port)
        except (TypeError, ValueError) as exc:
            raise FramingError("Invalid remote reference endpoint", cause=exc) from exc
        return make_stub(descriptor, endpoint)

    def read_error_body(self, depth: int = 0) -> ErrorDescriptor:
        if depth > MAX_NESTING_DEPTH:
            raise FramingError("Error cause chain is too deep")
        kind = self._str()
        message = self._str()
        args = self.read_value(depth + 1)
        if not isinstance(args, tuple):
            raise FramingError("Error arguments must be a tuple")
        tag = self._take(1)
        if tag == TAG_NONE:
            cause = None
        elif tag == TAG_ERROR:
            cause = self.read_error_body(depth + 1)
        else:
            raise FramingError("Error cause must be an error descriptor or none")
        return ErrorDescriptor(kind=kind, message=message, args=args, cause=cause)

    def read_error(self) -> ErrorDescriptor:
        if self._take(1) != TAG_ERROR:
            raise FramingError("ERR reply must carry an error descriptor")
        return self.read_error_body()


class WireCodec:
    """
    Encoder/decoder for request and reply frames.

    Satisfies ``decode_x(encode_x(frame)) == frame`` for every legal frame;
    any byte sequence not produced by the encoder raises FramingError.
    """

    def __init__(
        self,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
        registry: Optional[TransmittableRegistry] = None,
    ) -> None:
        if max_frame_bytes < MIN_MAX_FRAME_BYTES:
            raise ValueError(
                "max_frame_bytes must be at least {0}".format(MIN_MAX_FRAME_BYTES)
            )
        self.max_frame_bytes = max_frame_bytes
        self.registry = registry or default_registry

    # -- framing -----------------------------------------------------------

    def _frame(self, kind: int, body: bytes) -> bytes:
        if len(body) > self.max_frame_bytes:
            raise FramingError(
                "Frame exceeds maximum size",
                operation="encode",
                size=len(body),
                limit=self.max_frame_bytes,
            )
        return _HEADER.pack(MAGIC, WIRE_VERSION, kind, len(body)) + body

    def read_header(self, header: bytes, kind: Optional[int] = None) -> int:
        """
        Validate a frame header and return the body length that follows it.

        ``kind`` restricts the accepted frame kind (KIND_REQUEST or
        KIND_REPLY); None accepts either.
        """
        if len(header) != HEADER_SIZE:
            raise FramingError("Truncated frame header", size=len(header))
        magic, version, frame_kind, length = _HEADER.unpack(bytes(header))
        if magic != MAGIC:
            raise FramingError("Bad frame magic")
        if version != WIRE_VERSION:
            raise FramingError("Unsupported wire version", version=version)
        if frame_kind not in _KIND_NAMES or (kind is not None and frame_kind != kind):
            raise FramingError(
                "Unexpected frame kind",
                expected=_KIND_NAMES.get(kind, "any"),
                received=_KIND_NAMES.get(frame_kind, frame_kind),
            )
        if length > self.max_frame_bytes:
            raise FramingError(
                "Frame exceeds maximum size",
                size=length,
                limit=self.max_frame_bytes,
            )
        return length

    def _body(self, data: Any, kind: int) -> _Decoder:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise FramingError("Frame must be a byte sequence")
        view = memoryview(data).cast("B")
        if len(view) < HEADER_SIZE:
            raise FramingError("Truncated frame header", size=len(view))
        length = self.read_header(view[:HEADER_SIZE].tobytes(), kind)
        body = view[HEADER_SIZE:]
        if len(body) != length:
            raise FramingError(
                "Frame body length mismatch",
                declared=length,
                received=len(body),
            )
        return _Decoder(body, self.registry)

    # -- requests ----------------------------------------------------------

    def encode_request(self, frame: RequestFrame) -> bytes:
        encoder = _Encoder(self.registry)
        encoder.write_value(frame.selector)
        encoder.write_value(list(frame.param_types))
        encoder.write_value(list(frame.args))
        return self._frame(KIND_REQUEST, encoder.getvalue())

    def decode_request(self, data: bytes) -> RequestFrame:
        decoder = self._body(data, KIND_REQUEST)
        selector = decoder.read_value()
        param_types = decoder.read_value()
        args = decoder.read_value()
        if not decoder.at_end:
            raise FramingError("Trailing bytes after request body")
        if not isinstance(selector, str) or not selector:
            raise FramingError("Request selector must be a non-empty string")
        if not isinstance(param_types, list) or not all(
            isinstance(item, str) for item in param_types
        ):
            raise FramingError("Request parameter types must be a list of strings")
        if not isinstance(args, list):
            raise FramingError("Request arguments must be a list")
        return RequestFrame(selector=selector, param_types=tuple(param_types), args=tuple(args))

    # -- replies -----------------------------------------------------------

    def encode_reply(self, frame: ReplyFrame) -> bytes:
        encoder = _Encoder(self.registry)
        encoder.write_value(frame.status)
        if frame.status == STATUS_OK:
            if frame.has_payload:
                encoder.write_value(frame.payload)
        elif frame.status == STATUS_ERR:
            if not isinstance(frame.payload, ErrorDescriptor):
                raise SerializationError(
                    "ERR reply payload must be an ErrorDescriptor",
                    operation="encode",
                    data_type=type(frame.payload).__qualname__,
                )
            encoder.write_error(frame.payload)
        else:
            raise SerializationError(
                "Unknown reply status '{0}'".format(frame.status),
                operation="encode",
            )
        return self._frame(KIND_REPLY, encoder.getvalue())

    def decode_reply(self, data: bytes) -> ReplyFrame:
        decoder = self._body(data, KIND_REPLY)
        status = decoder.read_value()
        if status == STATUS_OK:
            if decoder.at_end:
                return ReplyFrame.ok_unit()
            reply = ReplyFrame.ok(decoder.read_value())
        elif status == STATUS_ERR:
            reply = ReplyFrame.error(decoder.read_error())
        else:
            raise FramingError("Unknown reply status", status=repr(status))
        if not decoder.at_end:
            raise FramingError("Trailing bytes after reply body")
        return reply


default_codec = WireCodec()


def encode_request(frame: RequestFrame) -> bytes:
    return default_codec.encode_request(frame)


def decode_request(data: bytes) -> RequestFrame:
    return default_codec.decode_request(data)


def encode_reply(frame: ReplyFrame) -> bytes:
    return default_codec.encode_reply(frame)


def decode_reply(data: bytes) -> ReplyFrame:
    return default_codec.decode_reply(data)


def read_header(header: bytes, kind: Optional[int] = None) -> int:
    return default_codec.read_header(header, kind)


__all__: List[str] = [
    "HEADER_SIZE",
    "KIND_REQUEST",
    "KIND_REPLY",
    "WIRE_VERSION",
    "WireCodec",
    "default_codec",
    "encode_request",
    "decode_request",
    "encode_reply",
    "decode_reply",
    "read_header",
]
