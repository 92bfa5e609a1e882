#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Remote interface contract.

A remote interface is an abstract class (``ABCMeta``) whose public methods are
all abstract. Every method lists the errors it may raise with ``@raises``, and
that list must include :class:`TransportError`::

    class Calculator(ABC):
        @abstractmethod
        @raises(TransportError, ValueError)
        def divide(self, a: int, b: int) -> float: ...

:class:`InterfaceDescriptor` turns such a class into the method table used by
stubs (to encode calls) and skeletons (to dispatch them).
"""

import inspect
import threading
import typing
from abc import ABCMeta
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Type

from .data.registry import default_registry
from .utils.exceptions import (
    ArgumentError,
    InterfaceShapeError,
    TransportError,
    error_kind,
)

RAISES_ATTR = "__easyrmi_raises__"

UNIT_TYPE = "None"
ANY_TYPE = "object"
REMOTE_TYPE_PREFIX = "remote:"

_BUILTIN_DESCRIPTORS: Dict[Any, str] = {
    int: "int",
    bool: "bool",
    str: "str",
    float: "float",
    bytes: "bytes",
    list: "list",
    tuple: "tuple",
    dict: "dict",
    object: ANY_TYPE,
    None: UNIT_TYPE,
    type(None): UNIT_TYPE,
}

_registry_lock = threading.RLock()
_interfaces_by_name: Dict[str, type] = {}
_names_by_interface: Dict[type, str] = {}


def type_descriptor(annotation: Any) -> str:
    """
    Map a parameter or return annotation to its wire type descriptor.
    """
    if annotation is inspect.Parameter.empty or annotation is typing.Any:
        return ANY_TYPE
    if isinstance(annotation, str):
        return annotation
    try:
        builtin = _BUILTIN_DESCRIPTORS.get(annotation)
    except TypeError:
        builtin = None
    if builtin is not None:
        return builtin
    if isinstance(annotation, type):
        entry = default_registry.by_class(annotation)
        if entry is not None:
            return entry.name
        with _registry_lock:
            interface_name = _names_by_interface.get(annotation)
        if interface_name is not None:
            return REMOTE_TYPE_PREFIX + interface_name
        return "{0}.{1}".format(annotation.__module__, annotation.__qualname__)
    return repr(annotation)


def declared_errors(func: Any) -> Tuple[type, ...]:
    """Return the error classes attached to ``func`` by ``@raises``."""
    return tuple(getattr(func, RAISES_ATTR, ()))


@dataclass(frozen=True)
class MethodDescriptor:
    """
    One remotable method: selector, parameter/return descriptors, error set.
    """

    selector: str
    param_names: Tuple[str, ...]
    param_types: Tuple[str, ...]
    return_type: str
    raises: Tuple[type, ...]
    signature: inspect.Signature = field(compare=False, repr=False)
    doc: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.selector, self.param_types)

    @property
    def returns_unit(self) -> bool:
        return self.return_type == UNIT_TYPE

    def bind(self, args: Tuple[Any, ...], kwargs: Mapping[str, Any]) -> Tuple[Any, ...]:
        """
        Bind call arguments to the declared parameters, defaults applied, and
        return them in declaration order.
        """
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return tuple(bound.arguments[name] for name in self.param_names)

    def resolve_error(self, kind: str) -> Optional[type]:
        """
        Return the declared application error class whose kind tag is
        ``kind``; :class:`TransportError` never matches.
        """
        for error_type in self.raises:
            if error_type is TransportError:
                continue
            if error_kind(error_type) == kind:
                return error_type
        return None

    @classmethod
    def from_function(cls, interface: type, name: str, func: Any) -> "MethodDescriptor":
        signature = inspect.signature(func)
        parameters = list(signature.parameters.values())
        if parameters and parameters[0].name == "self":
            parameters = parameters[1:]

        try:
            hints = typing.get_type_hints(func)
        except Exception:
            hints = dict(getattr(func, "__annotations__", {}))

        param_names = []
        param_types = []
        for parameter in parameters:
            if parameter.kind not in (
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
            ):
                raise InterfaceShapeError(
                    "Remote methods only take positional parameters",
                    interface=interface.__qualname__,
                    method=name,
                    parameter=parameter.name,
                )
            param_names.append(parameter.name)
            param_types.append(type_descriptor(hints.get(parameter.name, parameter.annotation)))

        return_annotation = hints.get("return", signature.return_annotation)
        return cls(
            selector=name,
            param_names=tuple(param_names),
            param_types=tuple(param_types),
            return_type=type_descriptor(return_annotation),
            raises=declared_errors(func),
            signature=signature.replace(parameters=parameters),
            doc=inspect.getdoc(func),
        )


class InterfaceDescriptor:
    """
    Validated description of a remote interface class.

    Descriptors are cached per class and compare equal iff they describe the
    same class.
    """

    _cache: Dict[type, "InterfaceDescriptor"] = {}
    _cache_lock = threading.Lock()

    def __init__(self, cls: type, methods: Mapping[str, MethodDescriptor]) -> None:
        self.cls = cls
        self._methods: Dict[str, MethodDescriptor] = dict(methods)

    @classmethod
    def of(cls, interface: Any) -> "InterfaceDescriptor":
        """
        Return the descriptor of ``interface`` (a class or a descriptor).

        Raises:
            ArgumentError: ``interface`` is None
            InterfaceShapeError: not an interface, or a method does not
                declare TransportError
        """
        if interface is None:
            raise ArgumentError()
        if isinstance(interface, InterfaceDescriptor):
            return interface

        with cls._cache_lock:
            cached = cls._cache.get(interface) if isinstance(interface, type) else None
        if cached is not None:
            return cached

        descriptor = cls._build(interface)
        with cls._cache_lock:
            return cls._cache.setdefault(interface, descriptor)

    @classmethod
    def _build(cls, interface: Any) -> "InterfaceDescriptor":
        if not inspect.isclass(interface) or not isinstance(interface, ABCMeta):
            raise InterfaceShapeError("Not an interface", interface=repr(interface))

        abstract_names = frozenset(getattr(interface, "__abstractmethods__", ()))
        for name in dir(interface):
            if name.startswith("_") or name in abstract_names:
                continue
            if callable(getattr(interface, name, None)):
                raise InterfaceShapeError(
                    "Not an interface: public method has an implementation",
                    interface=interface.__qualname__,
                    method=name,
                )

        methods: Dict[str, MethodDescriptor] = {}
        for name in sorted(abstract_names):
            member = inspect.getattr_static(interface, name)
            if name.startswith("_") or not inspect.isfunction(member):
                raise InterfaceShapeError(
                    "Remote interface members must be public abstract methods",
                    interface=interface.__qualname__,
                    member=name,
                )
            method = MethodDescriptor.from_function(interface, name, member)
            if TransportError not in method.raises:
                raise InterfaceShapeError(
                    "Not a remote interface: method does not declare TransportError",
                    interface=interface.__qualname__,
                    method=name,
                )
            methods[name] = method

        return cls(interface, methods)

    @property
    def name(self) -> str:
        return "{0}.{1}".format(self.cls.__module__, self.cls.__qualname__)

    @property
    def wire_name(self) -> Optional[str]:
        """Registered transmission name, or None if not registered."""
        with _registry_lock:
            return _names_by_interface.get(self.cls)

    @property
    def methods(self) -> Mapping[str, MethodDescriptor]:
        return dict(self._methods)

    def __iter__(self) -> Iterator[MethodDescriptor]:
        return iter(self._methods.values())

    def __len__(self) -> int:
        return len(self._methods)

    def method(self, selector: str) -> Optional[MethodDescriptor]:
        return self._methods.get(selector)

    def dispatch_table(self) -> Dict[Tuple[str, Tuple[str, ...]], MethodDescriptor]:
        """Methods keyed by ``(selector, param_types)``."""
        return {method.key: method for method in self._methods.values()}

    def check_implementation(self, impl: Any) -> None:
        """
        Verify that ``impl`` provides every interface method and accepts the
        declared positional parameters.
        """
        if impl is None:
            raise ArgumentError()

        for method in self._methods.values():
            target = getattr(impl, method.selector, None)
            if target is None or not callable(target):
                raise InterfaceShapeError(
                    "Implementation does not provide a required method",
                    interface=self.cls.__qualname__,
                    method=method.selector,
                    implementation=type(impl).__qualname__,
                )
            try:
                signature = inspect.signature(target)
            except (TypeError, ValueError):
                continue
            try:
                signature.bind(*([None] * len(method.param_names)))
            except TypeError as exc:
                raise InterfaceShapeError(
                    "Implementation method signature does not match the interface",
                    cause=exc,
                    interface=self.cls.__qualname__,
                    method=method.selector,
                    implementation=type(impl).__qualname__,
                ) from exc

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InterfaceDescriptor):
            return NotImplemented
        return self.cls is other.cls

    def __hash__(self) -> int:
        return hash(self.cls)

    def __repr__(self) -> str:
        return "InterfaceDescriptor({0}, methods={1})".format(
            self.name, sorted(self._methods)
        )


def register_interface(interface: Type[Any], name: Optional[str] = None) -> InterfaceDescriptor:
    """
    Validate ``interface`` and register it for transmission under ``name``
    (default ``module.qualname``), so stubs implementing it can be passed as
    call arguments and return values.
    """
    descriptor = InterfaceDescriptor.of(interface)
    wire_name = name or descriptor.name
    with _registry_lock:
        existing = _interfaces_by_name.get(wire_name)
        if existing is not None and existing is not descriptor.cls:
            raise ValueError(
                "Interface name '{0}' is already registered for {1!r}".format(
                    wire_name, existing
                )
            )
        previous = _names_by_interface.get(descriptor.cls)
        if previous is not None and previous != wire_name:
            _interfaces_by_name.pop(previous, None)
        _interfaces_by_name[wire_name] = descriptor.cls
        _names_by_interface[descriptor.cls] = wire_name
    return descriptor


def lookup_interface(name: str) -> Optional[InterfaceDescriptor]:
    """Return the descriptor registered under ``name``, if any."""
    with _registry_lock:
        interface = _interfaces_by_name.get(name)
    if interface is None:
        return None
    return InterfaceDescriptor.of(interface)
