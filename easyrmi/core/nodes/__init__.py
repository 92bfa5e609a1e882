#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Stub and skeleton endpoints of a remote call.
"""

from .stub import (
    RemoteStub,
    StubHandle,
    is_stub,
    make_stub,
    make_stub_from_skeleton,
    make_stub_from_skeleton_with_host,
    resolve_local_host,
    stub_class,
    stub_handle,
)
from .skeleton import Skeleton, SkeletonState

__all__ = [
    "RemoteStub",
    "StubHandle",
    "is_stub",
    "stub_handle",
    "stub_class",
    "make_stub",
    "make_stub_from_skeleton",
    "make_stub_from_skeleton_with_host",
    "resolve_local_host",
    "Skeleton",
    "SkeletonState",
]
