#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the error taxonomy, translation helpers, and error descriptors.
"""

import pytest

from easyrmi.core.data.models import Endpoint, ErrorDescriptor
from easyrmi.core.utils.exceptions import (
    ArgumentError,
    ExceptionFormatter,
    ExceptionTranslator,
    FramingError,
    InterfaceShapeError,
    NoSuchMethodError,
    RMIError,
    SerializationError,
    TransportError,
    error_kind,
)


def test_rmi_error_keeps_message_cause_and_context():
    cause = OSError("connection refused")
    error = TransportError("call failed", cause=cause, endpoint="127.0.0.1:9", attempt=None)

    assert error.message == "call failed"
    assert error.cause is cause
    assert error.__cause__ is cause
    assert error.context == {"endpoint": "127.0.0.1:9"}
    assert str(error) == "call failed (endpoint=127.0.0.1:9)"
    assert str(TransportError()) == TransportError.default_message


def test_taxonomy_keeps_builtin_compatibility():
    assert issubclass(ArgumentError, ValueError)
    assert issubclass(InterfaceShapeError, TypeError)
    assert issubclass(FramingError, SerializationError)
    assert issubclass(SerializationError, RMIError)
    assert FramingError("bad").operation == "decode"
    assert FramingError("bad", operation="encode").operation == "encode"


def test_as_transport_error_wraps_once():
    cause = ValueError("boom")
    wrapped = ExceptionTranslator.as_transport_error(cause, selector="ping")

    assert isinstance(wrapped, TransportError)
    assert wrapped.cause is cause
    assert wrapped.context["selector"] == "ping"
    assert ExceptionTranslator.as_transport_error(wrapped) is wrapped


def test_as_serialization_error_preserves_existing():
    existing = FramingError("bad magic")

    assert ExceptionTranslator.as_serialization_error(existing, "decode") is existing
    converted = ExceptionTranslator.as_serialization_error(TypeError("no"), "encode")
    assert converted.operation == "encode"


def test_unwrap_transport_strips_nested_wrappers():
    root = KeyError("acct")
    nested = TransportError("outer", cause=TransportError("inner", cause=root))

    assert ExceptionTranslator.unwrap_transport(nested) is root
    bare = TransportError("no cause")
    assert ExceptionTranslator.unwrap_transport(bare) is bare


def test_format_exception_chain_follows_causes():
    try:
        try:
            raise KeyError("acct")
        except KeyError as exc:
            raise ValueError("lookup failed") from exc
    except ValueError as error:
        rendered = ExceptionFormatter.format_exception_chain(error)

    assert rendered == "ValueError: lookup failed <- KeyError: 'acct'"


def test_error_descriptor_from_exception_with_plain_and_rich_args():
    plain = ErrorDescriptor.from_exception(ValueError("bad", 3))
    assert plain.kind == "builtins.ValueError"
    assert plain.args == ("bad", 3)
    assert plain.short_kind == "ValueError"

    rich = ErrorDescriptor.from_exception(ValueError(object()))
    assert rich.args == (rich.message,)


def test_error_descriptor_includes_cause_chain():
    try:
        try:
            raise KeyError("acct")
        except KeyError as exc:
            raise NoSuchMethodError(selector="ping", param_types=("int",)) from exc
    except NoSuchMethodError as error:
        descriptor = ErrorDescriptor.from_exception(error)

    assert descriptor.kind == error_kind(NoSuchMethodError)
    assert descriptor.cause.kind == "builtins.KeyError"
    assert descriptor.cause.cause is None


def test_endpoint_validation_and_rendering():
    assert str(Endpoint("127.0.0.1", 80)) == "127.0.0.1:80"
    assert str(Endpoint(None, 80)) == "0.0.0.0:80"
    assert Endpoint(None).is_wildcard
    assert Endpoint("0.0.0.0", 1).is_wildcard
    assert not Endpoint("localhost", 1).is_wildcard
    assert not Endpoint("localhost").has_port
    assert Endpoint.coerce(("h", 5)) == Endpoint("h", 5)
    assert Endpoint("h", 5) != Endpoint("H", 5)

    with pytest.raises(ValueError):
        Endpoint("h", 70000)
    with pytest.raises(TypeError):
        Endpoint("h", "80")
    with pytest.raises(TypeError):
        Endpoint.coerce("h:80")
