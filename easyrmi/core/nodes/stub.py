#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Client-side stubs.

A stub is an instance of a class synthesized once per remote interface. The
class subclasses both :class:`RemoteStub` and the interface, and each
interface method is replaced by a forwarding function that ships the call to
the skeleton at the stub's endpoint over a fresh TCP connection::

    stub = make_stub(Calculator, ("127.0.0.1", 4040))
    stub.divide(6, 3)   # -> 2.0, or raises a declared error / TransportError

Stubs are compared, hashed and printed by their :class:`StubHandle` only;
none of these operations touch the network.
"""

import inspect
import socket
import threading
import types
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..config import RMIConfig, get_config
from ..data.codec import HEADER_SIZE, KIND_REPLY, WireCodec
from ..data.models import Endpoint, ErrorDescriptor, RequestFrame, ReplyFrame
from ..interface import InterfaceDescriptor, MethodDescriptor
from ..utils.exceptions import (
    ArgumentError,
    ExceptionTranslator,
    FramingError,
    HostResolutionError,
    RemoteFault,
    SerializationError,
    SkeletonStateError,
    TransportError,
)
from ..utils.logger import get_logger

EndpointLike = Union[Endpoint, Tuple[Optional[str], int]]

_logger = get_logger("stub")

_stub_classes: Dict[type, type] = {}
_stub_classes_lock = threading.Lock()


@dataclass(frozen=True)
class StubHandle:
    """
    Identity of a stub: the interface it implements and the skeleton endpoint
    it calls.
    """

    interface: InterfaceDescriptor
    endpoint: Endpoint

    def __str__(self) -> str:
        return "Remote interface: {0}; host&port: {1}".format(
            self.interface.name, self.endpoint
        )


class RemoteStub:
    """
    Base class of every synthesized stub class.
    """

    _easyrmi_interface: InterfaceDescriptor

    def __init__(self, endpoint: Endpoint, config: Optional[RMIConfig] = None) -> None:
        self._easyrmi_handle = StubHandle(type(self)._easyrmi_interface, endpoint)
        self._easyrmi_config = config

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteStub):
            return False
        return self._easyrmi_handle == other._easyrmi_handle

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self._easyrmi_handle)

    def __str__(self) -> str:
        return str(self._easyrmi_handle)

    def __repr__(self) -> str:
        return "<{0}>".format(self._easyrmi_handle)

    def __reduce__(self) -> Tuple[Any, ...]:
        handle = self._easyrmi_handle
        return (make_stub, (handle.interface.cls, handle.endpoint))


def is_stub(obj: Any) -> bool:
    return isinstance(obj, RemoteStub)


def stub_handle(obj: Any) -> Optional[StubHandle]:
    """Return the handle of ``obj`` if it is a stub, else None."""
    if isinstance(obj, RemoteStub):
        return obj._easyrmi_handle
    return None


# -- call path -------------------------------------------------------------


@lru_cache(maxsize=8)
def _codec_for(max_frame_bytes: int) -> WireCodec:
    return WireCodec(max_frame_bytes)


def _recv_exactly(sock: socket.socket, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = sock.recv(min(remaining, 65536))
        if not chunk:
            raise FramingError(
                "Connection closed before the reply was complete",
                expected=size,
                received=size - remaining,
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _exchange(
    endpoint: Endpoint,
    request: bytes,
    codec: WireCodec,
    config: RMIConfig,
) -> ReplyFrame:
    address = (endpoint.bind_host, endpoint.port)
    with socket.create_connection(address, timeout=config.connect_timeout) as sock:
        sock.settimeout(config.call_timeout)
        sock.sendall(request)
        header = _recv_exactly(sock, HEADER_SIZE)
        body = _recv_exactly(sock, codec.read_header(header, KIND_REPLY))
    return codec.decode_reply(header + body)


def _fault_chain(descriptor: Optional[ErrorDescriptor]) -> Optional[RemoteFault]:
    if descriptor is None:
        return None
    return RemoteFault(
        descriptor.message,
        kind=descriptor.kind,
        cause=_fault_chain(descriptor.cause),
    )


def _remote_error(method: MethodDescriptor, descriptor: ErrorDescriptor) -> BaseException:
    error_type = method.resolve_error(descriptor.kind)
    if error_type is not None:
        try:
            error = error_type(*descriptor.args)
        except Exception as exc:
            _logger.debug(
                "Cannot rebuild %s from %r: %s", descriptor.kind, descriptor.args, exc
            )
        else:
            cause = _fault_chain(descriptor.cause)
            if cause is not None:
                error.__cause__ = cause
            return error

    return TransportError(
        "Remote call raised an undeclared error",
        cause=_fault_chain(descriptor),
        selector=method.selector,
        kind=descriptor.kind,
    )


def _invoke(
    stub: RemoteStub,
    method: MethodDescriptor,
    args: Tuple[Any, ...],
    kwargs: Mapping[str, Any],
) -> Any:
    endpoint = stub._easyrmi_handle.endpoint
    config = stub._easyrmi_config or get_config()
    codec = _codec_for(config.max_frame_bytes)

    ordered = method.bind(args, kwargs)
    try:
        request = codec.encode_request(
            RequestFrame(method.selector, method.param_types, ordered)
        )
    except SerializationError as exc:
        raise ExceptionTranslator.as_transport_error(
            exc,
            "Cannot encode call arguments",
            selector=method.selector,
        ) from exc

    _logger.debug("Calling %s on %s", method.selector, endpoint)
    try:
        reply = _exchange(endpoint, request, codec, config)
    except (OSError, SerializationError) as exc:
        raise ExceptionTranslator.as_transport_error(
            exc,
            selector=method.selector,
            endpoint=str(endpoint),
        ) from exc

    if reply.is_ok:
        return reply.payload
    raise _remote_error(method, reply.payload)


# -- class synthesis -------------------------------------------------------


def _make_forward_function(descriptor: InterfaceDescriptor, method: MethodDescriptor) -> Any:
    def forward(self: RemoteStub, *args: Any, **kwargs: Any) -> Any:
        return _invoke(self, method, args, kwargs)

    self_parameter = inspect.Parameter("self", inspect.Parameter.POSITIONAL_OR_KEYWORD)
    forward.__name__ = method.selector
    forward.__qualname__ = "{0}Stub.{1}".format(descriptor.cls.__name__, method.selector)
    forward.__signature__ = method.signature.replace(  # type: ignore[attr-defined]
        parameters=[self_parameter, *method.signature.parameters.values()]
    )
    docstring = "remote proxy for {0}{1} of {2}".format(
        method.selector, method.signature, descriptor.name
    )
    if method.doc:
        docstring = docstring + "\n\n" + method.doc
    forward.__doc__ = docstring
    return forward


def _synthesize(descriptor: InterfaceDescriptor) -> type:
    def exec_body(namespace: Dict[str, Any]) -> None:
        namespace["__module__"] = __name__
        namespace["__doc__"] = "Stub for {0}.".format(descriptor.name)
        namespace["_easyrmi_interface"] = descriptor
        for method in descriptor:
            namespace[method.selector] = _make_forward_function(descriptor, method)

    return types.new_class(
        descriptor.cls.__name__ + "Stub",
        (RemoteStub, descriptor.cls),
        exec_body=exec_body,
    )


def stub_class(interface: Any) -> type:
    """Return the (cached) stub class of ``interface``."""
    descriptor = InterfaceDescriptor.of(interface)
    with _stub_classes_lock:
        cls = _stub_classes.get(descriptor.cls)
        if cls is None:
            cls = _synthesize(descriptor)
            _stub_classes[descriptor.cls] = cls
    return cls


# -- factories -------------------------------------------------------------


def make_stub(
    interface: Any,
    endpoint: EndpointLike,
    *,
    config: Optional[RMIConfig] = None,
) -> RemoteStub:
    """
    Create a stub for ``interface`` calling the skeleton at ``endpoint``.

    Args:
        interface: Remote interface class or its InterfaceDescriptor
        endpoint: Endpoint or ``(host, port)`` tuple
        config: Per-stub configuration (default: process-wide config)

    Raises:
        ArgumentError: ``interface`` or ``endpoint`` is None
        InterfaceShapeError: ``interface`` is not a valid remote interface
    """
    if interface is None or endpoint is None:
        raise ArgumentError("interface and endpoint must not be None")
    cls = stub_class(interface)
    return cls(Endpoint.coerce(endpoint), config)


def resolve_local_host(family: int = socket.AF_INET) -> str:
    """
    Resolve this machine's host name to an address usable by remote peers.
    """
    try:
        if family == socket.AF_INET6:
            infos = socket.getaddrinfo(
                socket.gethostname(), None, socket.AF_INET6, socket.SOCK_STREAM
            )
            return infos[0][4][0]
        return socket.gethostbyname(socket.gethostname())
    except OSError as exc:
        raise HostResolutionError(
            "Cannot resolve the local host address",
            cause=exc,
        ) from exc


def _skeleton_address(skeleton: Any) -> Endpoint:
    address = skeleton.address()
    if address is None or not address.has_port:
        raise SkeletonStateError(
            "Skeleton has no assigned address; start it or give it a port",
            address=None if address is None else str(address),
        )
    return address


def make_stub_from_skeleton(interface: Any, skeleton: Any) -> RemoteStub:
    """
    Create a stub for the skeleton's address. A wildcard host is replaced by
    the local host's address.

    Raises:
        ArgumentError: an argument is None
        InterfaceShapeError: ``interface`` is not a valid remote interface
        SkeletonStateError: the skeleton has no concrete port
        HostResolutionError: the local host cannot be resolved
    """
    if interface is None or skeleton is None:
        raise ArgumentError("interface and skeleton must not be None")
    descriptor = InterfaceDescriptor.of(interface)
    address = _skeleton_address(skeleton)
    if address.is_wildcard:
        ipv6_only = ":" in (address.host or "") and not socket.has_dualstack_ipv6()
        address = address.with_host(
            resolve_local_host(socket.AF_INET6 if ipv6_only else socket.AF_INET)
        )
    return make_stub(descriptor, address, config=getattr(skeleton, "config", None))


def make_stub_from_skeleton_with_host(
    interface: Any,
    skeleton: Any,
    hostname: str,
) -> RemoteStub:
    """
    Create a stub calling ``hostname`` on the skeleton's port.

    Raises:
        ArgumentError: an argument is None
        InterfaceShapeError: ``interface`` is not a valid remote interface
        SkeletonStateError: the skeleton has no concrete port
    """
    if interface is None or skeleton is None or hostname is None:
        raise ArgumentError("interface, skeleton and hostname must not be None")
    descriptor = InterfaceDescriptor.of(interface)
    address = _skeleton_address(skeleton)
    return make_stub(
        descriptor,
        Endpoint(hostname, address.port),
        config=getattr(skeleton, "config", None),
    )


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
]
