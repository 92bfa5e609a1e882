#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Decorators declaring remote interfaces and the values they exchange.

Example::

    @remote_interface
    class Calculator(ABC):
        @abstractmethod
        @raises(TransportError, ZeroDivisionError)
        def divide(self, a: int, b: int) -> float: ...

    @transmittable(version=2)
    @dataclass
    class Point:
        x: int
        y: int
"""

from typing import Any, Callable, Optional, TypeVar, Union, cast

from .core.data.registry import default_registry
from .core.interface import RAISES_ATTR, register_interface

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


def raises(*error_types: type) -> Callable[[F], F]:
    """
    Declare the errors a remote method may raise.

    Every remote method must list :class:`TransportError`. Declared
    application errors raised by the implementation are re-raised unchanged
    on the client; undeclared ones surface as TransportError.
    """
    for error_type in error_types:
        if not (isinstance(error_type, type) and issubclass(error_type, BaseException)):
            raise TypeError("@raises expects exception classes, got {0!r}".format(error_type))

    def decorator(func: F) -> F:
        declared = tuple(getattr(func, RAISES_ATTR, ()))
        merged = declared + tuple(item for item in error_types if item not in declared)
        setattr(func, RAISES_ATTR, merged)
        return func

    return decorator


def remote_interface(
    cls: Optional[T] = None,
    *,
    name: Optional[str] = None,
) -> Union[Callable[[T], T], T]:
    """
    Validate a remote interface and register it for transmission, so stubs
    implementing it can travel as call arguments and return values.

    Supports both ``@remote_interface`` and ``@remote_interface(name=...)``.
    """

    def decorator(interface: T) -> T:
        register_interface(cast(type, interface), name)
        return interface

    if cls is not None:
        return decorator(cls)
    return decorator


def transmittable(
    cls: Optional[T] = None,
    *,
    name: Optional[str] = None,
    version: int = 1,
) -> Union[Callable[[T], T], T]:
    """
    Register a dataclass as a value type the wire codec may carry.

    Both peers must register the type under the same name and version.
    """

    def decorator(value_type: T) -> T:
        default_registry.register(cast(type, value_type), name=name, version=version)
        return value_type

    if cls is not None:
        return decorator(cls)
    return decorator


__all__ = ["raises", "remote_interface", "transmittable"]
