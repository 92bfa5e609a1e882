#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRMI error taxonomy.

Two orthogonal families reach client code:

* Definition and lifecycle errors, raised synchronously by the stub factory
  and the skeleton: :class:`ArgumentError`, :class:`InterfaceShapeError`,
  :class:`SkeletonStateError` and :class:`HostResolutionError`.
* Runtime communication failures, always raised from stub calls as the single
  :class:`TransportError` kind with the underlying problem attached as its
  cause (codec failures, refused connections, unknown methods, undeclared
  remote errors, ...).

Application errors are user-defined and never wrapped here unless they were
not declared on the invoked method.
"""

from typing import Any, Dict, List, Optional, Tuple


class RMIError(Exception):
    """
    Base class for every error raised by the EasyRMI runtime.

    Keyword arguments other than ``message`` and ``cause`` are kept in
    :attr:`context` and rendered after the message for diagnostics.
    """

    default_message = "EasyRMI error"

    def __init__(
        self,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.cause = cause
        self.context: Dict[str, Any] = {
            key: value for key, value in context.items() if value is not None
        }
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(
            "{0}={1}".format(key, value) for key, value in self.context.items()
        )
        return "{0} ({1})".format(self.message, details)


class ArgumentError(RMIError, ValueError):
    """A required argument was ``None``."""

    default_message = "At least one of the arguments is None"


class InterfaceShapeError(RMIError, TypeError):
    """
    A class cannot be used as a remote interface, or an implementation does
    not provide the methods the interface requires.
    """

    default_message = "Not a remote interface"


class SkeletonStateError(RMIError, RuntimeError):
    """A skeleton was used in a lifecycle state that does not allow it."""

    default_message = "Invalid skeleton state"


class HostResolutionError(RMIError):
    """A wildcard skeleton address could not be resolved to a local host."""

    default_message = "No address can be found for the local host"


class TransportError(RMIError):
    """
    Failure of the remote invocation machinery.

    Every remote interface method must declare this error in its
    ``@raises(...)`` set. Stub calls raise it for any I/O, framing, lookup or
    undeclared remote failure; :attr:`cause` carries the underlying error.
    """

    default_message = "Remote method invocation failed"


class SerializationError(RMIError):
    """A value or frame could not be encoded or decoded."""

    default_message = "Serialization failed"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        data_type: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message,
            cause=cause,
            operation=operation,
            data_type=data_type,
            **context,
        )
        self.operation = operation
        self.data_type = data_type


class FramingError(SerializationError):
    """A byte sequence is not a well-formed EasyRMI frame."""

    default_message = "Malformed frame"

    def __init__(
        self,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        operation: str = "decode",
        **context: Any,
    ) -> None:
        super().__init__(message, operation=operation, cause=cause, **context)


class NoSuchMethodError(RMIError):
    """The skeleton has no method matching the requested selector and types."""

    default_message = "No such remote method"

    def __init__(
        self,
        message: Optional[str] = None,
        selector: Optional[str] = None,
        param_types: Optional[Tuple[str, ...]] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message,
            selector=selector,
            param_types=list(param_types) if param_types is not None else None,
            **context,
        )
        self.selector = selector
        self.param_types = param_types


class RemoteFault(RMIError):
    """
    Client-side stand-in for an error raised in another process that cannot
    be re-raised natively (undeclared, unknown, or a remote cause).
    """

    default_message = "Remote error"

    def __init__(
        self,
        message: Optional[str] = None,
        kind: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause, kind=kind)
        self.kind = kind


def error_kind(error_type: type) -> str:
    """
    Wire kind tag of an exception class: ``"<module>.<qualname>"``.
    """
    return "{0}.{1}".format(error_type.__module__, error_type.__qualname__)


class ExceptionTranslator:
    """
    Helpers converting arbitrary exceptions into EasyRMI error kinds.
    """

    @staticmethod
    def as_transport_error(
        exc: BaseException,
        message: Optional[str] = None,
        **context: Any,
    ) -> TransportError:
        """
        Wrap ``exc`` in a :class:`TransportError`; transport errors are
        returned unchanged.
        """
        if isinstance(exc, TransportError):
            return exc
        return TransportError(
            message or "{0}: {1}".format(type(exc).__name__, exc),
            cause=exc,
            **context,
        )

    @staticmethod
    def as_serialization_error(
        exc: BaseException,
        operation: str,
        message: Optional[str] = None,
        data_type: Optional[str] = None,
    ) -> SerializationError:
        if isinstance(exc, SerializationError):
            return exc
        return SerializationError(
            message or "{0} failed: {1}".format(operation.capitalize(), exc),
            operation=operation,
            data_type=data_type,
            cause=exc,
        )

    @staticmethod
    def unwrap_transport(exc: BaseException) -> BaseException:
        """
        Strip :class:`TransportError` wrapper layers that carry a cause.
        """
        while isinstance(exc, TransportError) and exc.cause is not None:
            exc = exc.cause
        return exc


class ExceptionFormatter:
    """
    Render exceptions for log output.
    """

    @staticmethod
    def format_exception(exc: BaseException) -> str:
        return "{0}: {1}".format(type(exc).__name__, exc)

    @staticmethod
    def iter_chain(exc: BaseException, max_depth: int = 16) -> List[BaseException]:
        chain: List[BaseException] = []
        current: Optional[BaseException] = exc
        while current is not None and len(chain) < max_depth:
            if any(current is seen for seen in chain):
                break
            chain.append(current)
            current = current.__cause__
        return chain

    @classmethod
    def format_exception_chain(cls, exc: BaseException) -> str:
        return " <- ".join(
            cls.format_exception(item) for item in cls.iter_chain(exc)
        )


__all__ = [
    "RMIError",
    "ArgumentError",
    "InterfaceShapeError",
    "SkeletonStateError",
    "HostResolutionError",
    "TransportError",
    "SerializationError",
    "FramingError",
    "NoSuchMethodError",
    "RemoteFault",
    "error_kind",
    "ExceptionTranslator",
    "ExceptionFormatter",
]
