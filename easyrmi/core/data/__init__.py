#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Wire-level data model and codec for EasyRMI.
"""

from .models import (
    STATUS_ERR,
    STATUS_OK,
    UNASSIGNED_PORT,
    WILDCARD_HOST,
    Endpoint,
    ErrorDescriptor,
    ReplyFrame,
    RequestFrame,
)
from .registry import TransmittableRegistry, TransmittableType, default_registry
from .codec import (
    HEADER_SIZE,
    KIND_REPLY,
    KIND_REQUEST,
    WIRE_VERSION,
    WireCodec,
    decode_reply,
    decode_request,
    default_codec,
    encode_reply,
    encode_request,
    read_header,
)

__all__ = [
    "STATUS_OK",
    "STATUS_ERR",
    "UNASSIGNED_PORT",
    "WILDCARD_HOST",
    "Endpoint",
    "ErrorDescriptor",
    "RequestFrame",
    "ReplyFrame",
    "TransmittableRegistry",
    "TransmittableType",
    "default_registry",
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
