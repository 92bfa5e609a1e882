#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRMI public API with lazy imports.

Stubs, skeletons and the error taxonomy are resolved on first access, so
``import easyrmi`` stays cheap.
"""

from importlib import import_module
from typing import Any, Dict, Tuple

from ._version import __version__

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
    "is_stub": ("easyrmi.core.nodes", "is_stub"),
    "stub_handle": ("easyrmi.core.nodes", "stub_handle"),
    "raises": ("easyrmi.decorators", "raises"),
    "remote_interface": ("easyrmi.decorators", "remote_interface"),
    "transmittable": ("easyrmi.decorators", "transmittable"),
    "Endpoint": ("easyrmi.core.data", "Endpoint"),
    "RMIConfig": ("easyrmi.core.config", "RMIConfig"),
    "get_config": ("easyrmi.core.config", "get_config"),
    "set_config": ("easyrmi.core.config", "set_config"),
    "create_config": ("easyrmi.core.config", "create_config"),
    "RMIError": ("easyrmi.core.utils.exceptions", "RMIError"),
    "ArgumentError": ("easyrmi.core.utils.exceptions", "ArgumentError"),
    "InterfaceShapeError": ("easyrmi.core.utils.exceptions", "InterfaceShapeError"),
    "SkeletonStateError": ("easyrmi.core.utils.exceptions", "SkeletonStateError"),
    "HostResolutionError": ("easyrmi.core.utils.exceptions", "HostResolutionError"),
    "TransportError": ("easyrmi.core.utils.exceptions", "TransportError"),
    "SerializationError": ("easyrmi.core.utils.exceptions", "SerializationError"),
    "FramingError": ("easyrmi.core.utils.exceptions", "FramingError"),
    "NoSuchMethodError": ("easyrmi.core.utils.exceptions", "NoSuchMethodError"),
    "RemoteFault": ("easyrmi.core.utils.exceptions", "RemoteFault"),
}

__all__ = ["__version__", *sorted(_EXPORT_MAP.keys())]


def __getattr__(name: str) -> Any:
    """
    Resolve public API symbols lazily.
    """
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'easyrmi' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
