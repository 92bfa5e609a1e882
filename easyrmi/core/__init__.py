#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRMI core module exports (lazy-loaded).
"""

from importlib import import_module
from typing import Any, Dict, Tuple

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "Skeleton": ("easyrmi.core.nodes", "Skeleton"),
    "SkeletonState": ("easyrmi.core.nodes", "SkeletonState"),
    "RemoteStub": ("easyrmi.core.nodes", "RemoteStub"),
    "StubHandle": ("easyrmi.core.nodes", "StubHandle"),
    "make_stub": ("easyrmi.core.nodes", "make_stub"),
    "make_stub_from_skeleton": ("easyrmi.core.nodes", "make_stub_from_skeleton"),
    "make_stub_from_skeleton_with_host": (
        "easyrmi.core.nodes",
        "make_stub_from_skeleton_with_host",
    ),
    "InterfaceDescriptor": ("easyrmi.core.interface", "InterfaceDescriptor"),
    "MethodDescriptor": ("easyrmi.core.interface", "MethodDescriptor"),
    "Endpoint": ("easyrmi.core.data", "Endpoint"),
    "WireCodec": ("easyrmi.core.data", "WireCodec"),
    "RMIConfig": ("easyrmi.core.config", "RMIConfig"),
    "get_config": ("easyrmi.core.config", "get_config"),
    "set_config": ("easyrmi.core.config", "set_config"),
    "create_config": ("easyrmi.core.config", "create_config"),
}

__all__ = sorted(_EXPORT_MAP.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'easyrmi.core' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
