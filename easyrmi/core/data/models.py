#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Value objects exchanged between stubs and skeletons.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from ..utils.exceptions import error_kind

WILDCARD_HOST = "0.0.0.0"
WILDCARD_HOSTS = frozenset({"", WILDCARD_HOST, "::"})
UNASSIGNED_PORT = 0

STATUS_OK = "OK"
STATUS_ERR = "ERR"

MAX_CAUSE_DEPTH = 8


@dataclass(frozen=True)
class Endpoint:
    """
    ``(host, port)`` pair identifying a skeleton.

    ``host`` of ``None`` (or ``"0.0.0.0"``) is the wildcard address and port
    ``0`` means "not assigned yet". Equality is literal on both fields.
    """

    host: Optional[str]
    port: int = UNASSIGNED_PORT

    def __post_init__(self) -> None:
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise TypeError(f"port must be an int, got {type(self.port).__name__}")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {self.port}")

    @classmethod
    def coerce(cls, value: Union["Endpoint", Tuple[Optional[str], int]]) -> "Endpoint":
        """Accept an :class:`Endpoint` or a ``(host, port)`` tuple."""
        if isinstance(value, Endpoint):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(value[0], value[1])
        raise TypeError("endpoint must be an Endpoint or a (host, port) tuple")

    @property
    def is_wildcard(self) -> bool:
        return self.host is None or self.host in WILDCARD_HOSTS

    @property
    def has_port(self) -> bool:
        return self.port != UNASSIGNED_PORT

    @property
    def bind_host(self) -> str:
        return WILDCARD_HOST if self.host is None else self.host

    def with_host(self, host: str) -> "Endpoint":
        return Endpoint(host, self.port)

    def with_port(self, port: int) -> "Endpoint":
        return Endpoint(self.host, port)

    def __str__(self) -> str:
        return "{0}:{1}".format(self.bind_host, self.port)


@dataclass(frozen=True)
class RequestFrame:
    """
    One remote call: method selector, parameter type descriptors, arguments.
    """

    selector: str
    param_types: Tuple[str, ...] = ()
    args: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "param_types", tuple(self.param_types))
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def key(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.selector, self.param_types)


@dataclass(frozen=True)
class ErrorDescriptor:
    """
    Wire representation of a raised error.

    ``kind`` is the ``module.qualname`` of the error class, ``args`` the
    constructor arguments when they are plain values, and ``cause`` the
    descriptor of the explicit ``__cause__`` chain.
    """

    kind: str
    message: str
    args: Tuple[Any, ...] = ()
    cause: Optional["ErrorDescriptor"] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def from_exception(cls, exc: BaseException, depth: int = 0) -> "ErrorDescriptor":
        message = str(exc)
        args = tuple(exc.args) if all(_is_plain(value) for value in exc.args) else (message,)
        cause = None
        if exc.__cause__ is not None and depth < MAX_CAUSE_DEPTH:
            cause = cls.from_exception(exc.__cause__, depth + 1)
        return cls(kind=error_kind(type(exc)), message=message, args=args, cause=cause)

    @property
    def short_kind(self) -> str:
        return self.kind.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class ReplyFrame:
    """
    Outcome of one remote call.

    ``status`` is ``"OK"`` or ``"ERR"``. An ``OK`` reply carries the return
    value unless the method returns unit (``has_payload`` is then False); an
    ``ERR`` reply always carries an :class:`ErrorDescriptor`.
    """

    status: str
    payload: Any = None
    has_payload: bool = field(default=True)

    @classmethod
    def ok(cls, value: Any) -> "ReplyFrame":
        return cls(STATUS_OK, value, True)

    @classmethod
    def ok_unit(cls) -> "ReplyFrame":
        return cls(STATUS_OK, None, False)

    @classmethod
    def error(cls, descriptor: ErrorDescriptor) -> "ReplyFrame":
        return cls(STATUS_ERR, descriptor, True)

    @property
    def is_ok(self) -> bool:
        return self.status == STATUS_OK


_PLAIN_TYPES = (type(None), bool, int, float, str, bytes)


def _is_plain(value: Any) -> bool:
    if isinstance(value, _PLAIN_TYPES):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_plain(item) for item in value)
    return False
