#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Server-side skeletons.

A :class:`Skeleton` hosts one implementation object behind a TCP listener.
The listener is bound synchronously by :meth:`Skeleton.start`; accepting and
serving connections happens on an asyncio event loop running in a background
thread, while implementation methods run in a worker thread pool. Each
connection carries exactly one request and one reply.

Lifecycle::

    FRESH --start()--> RUNNING --stop() / fatal accept error--> STOPPED

``STOPPED`` is terminal. Subclasses customize failure handling by overriding
:meth:`Skeleton.on_listen_error`, :meth:`Skeleton.on_service_error` and
:meth:`Skeleton.on_stopped`.
"""

import asyncio
import contextlib
import errno
import functools
import inspect
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Optional, Set, Tuple, Union

from ..config import RMIConfig, get_config
from ..data.codec import HEADER_SIZE, KIND_REQUEST, WireCodec
from ..data.models import WILDCARD_HOST, Endpoint, ErrorDescriptor, ReplyFrame, RequestFrame
from ..interface import InterfaceDescriptor
from ..utils.exceptions import (
    ArgumentError,
    ExceptionFormatter,
    ExceptionTranslator,
    FramingError,
    NoSuchMethodError,
    SerializationError,
    SkeletonStateError,
    TransportError,
)
from ..utils.logger import ModernLogger


def _errnos(*names: str) -> frozenset:
    return frozenset(getattr(errno, name) for name in names if hasattr(errno, name))


TRANSIENT_ACCEPT_ERRNOS = _errnos(
    "ECONNABORTED",
    "EINTR",
    "EAGAIN",
    "EWOULDBLOCK",
    "EMFILE",
    "ENFILE",
    "ENOBUFS",
    "ENOMEM",
    "EPROTO",
)
RESOURCE_EXHAUSTION_ERRNOS = _errnos("EMFILE", "ENFILE", "ENOBUFS", "ENOMEM")

# Pause before retrying accept() when the process is out of descriptors/memory
RESOURCE_BACKOFF_SECONDS = 0.05


class SkeletonState(Enum):
    """
    Lifecycle states of a skeleton.
    """
    FRESH = "fresh"
    RUNNING = "running"
    STOPPED = "stopped"


class Skeleton(ModernLogger):
    """
    TCP server dispatching remote calls to an implementation object.

    Example:
        >>> skeleton = Skeleton(Calculator, CalculatorImpl(), ("127.0.0.1", 0))
        >>> skeleton.start()
        >>> stub = make_stub_from_skeleton(Calculator, skeleton)
        >>> skeleton.stop()
    """

    def __init__(
        self,
        interface: Any,
        impl: Any,
        endpoint: Optional[Union[Endpoint, Tuple[Optional[str], int]]] = None,
        *,
        config: Optional[RMIConfig] = None,
    ) -> None:
        """
        Args:
            interface: Remote interface class or its InterfaceDescriptor
            impl: Object implementing every method of ``interface``
            endpoint: Address to listen on; host None (or "0.0.0.0") is the
                wildcard and port 0 lets the OS choose
            config: Skeleton configuration (default: process-wide config)

        Raises:
            ArgumentError: ``interface`` or ``impl`` is None
            InterfaceShapeError: ``interface`` is not a valid remote
                interface, or ``impl`` does not implement it
        """
        if interface is None or impl is None:
            raise ArgumentError("interface and impl must not be None")

        self.interface = InterfaceDescriptor.of(interface)
        self.interface.check_implementation(impl)
        self.config = config or get_config()
        super().__init__(
            name="easyrmi.skeleton.{0}".format(self.interface.name),
            level=self.config.log_level,
        )

        self._impl = impl
        self._endpoint = Endpoint.coerce(endpoint) if endpoint is not None else None
        self._address: Optional[Endpoint] = self._endpoint
        self._codec = WireCodec(self.config.max_frame_bytes)
        self._dispatch = self.interface.dispatch_table()

        self._state = SkeletonState.FRESH
        self._state_lock = threading.Lock()
        self._start_requested = False
        self._stop_cause: Optional[BaseException] = None

        self._listener: Optional[socket.socket] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._acceptor: Optional["asyncio.Task[None]"] = None
        self._shutdown_task: Optional["asyncio.Task[None]"] = None
        self._connections: Set["asyncio.Task[None]"] = set()
        # Connections still waiting for their request bytes
        self._reading: Set["asyncio.Task[None]"] = set()
        self._draining = False
        self._closed: Optional["asyncio.Future[Any]"] = None

        self._ready = threading.Event()
        self._stopped = threading.Event()

    # -- public surface ----------------------------------------------------

    @property
    def state(self) -> SkeletonState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SkeletonState.RUNNING

    @property
    def stop_cause(self) -> Optional[BaseException]:
        """Error that stopped the skeleton, None after a requested stop."""
        return self._stop_cause

    def address(self) -> Optional[Endpoint]:
        """
        Endpoint of the skeleton: the bound address once started, otherwise
        the configured endpoint (None if none was given).
        """
        return self._address

    def start(self) -> "Skeleton":
        """
        Bind the listener and start serving in a background thread.

        Returns once the skeleton is RUNNING.

        Raises:
            SkeletonStateError: the skeleton was already started
            TransportError: binding or starting the event loop failed
        """
        with self._state_lock:
            if self._state is not SkeletonState.FRESH or self._start_requested:
                raise SkeletonStateError(
                    "Skeleton can only be started once",
                    state=self._state.value,
                )
            self._start_requested = True

        endpoint = self._endpoint or Endpoint(None)
        try:
            listener = self._bind(endpoint)
        except OSError as exc:
            error = ExceptionTranslator.as_transport_error(
                exc,
                "Cannot bind skeleton listener",
                address=str(endpoint),
            )
            if self._mark_stopped(error):
                self._notify_stopped(error)
            self._stopped.set()
            raise error from exc

        self._listener = listener
        port = listener.getsockname()[1]
        self._address = Endpoint(
            endpoint.host if endpoint.host is not None else WILDCARD_HOST,
            port,
        )

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="EasyRMIWorker-{0}".format(port),
        )
        self._thread = threading.Thread(
            target=self._run_loop,
            name="EasyRMISkeleton-{0}".format(port),
            daemon=True,
        )
        self._thread.start()

        if not self._ready.wait(self.config.start_timeout) or self._closed is None:
            cause = self._stop_cause or TimeoutError(
                "Skeleton did not start within {0} seconds".format(self.config.start_timeout)
            )
            error = ExceptionTranslator.as_transport_error(
                cause,
                "Skeleton failed to start",
                address=str(self._address),
            )
            self._close_listener()
            if self._mark_stopped(error):
                self._notify_stopped(error)
            raise error

        self.info("Serving %s on %s", self.interface.name, self._address)
        return self

    def stop(self) -> None:
        """
        Stop accepting connections, close connections that have not sent a
        complete request, wait for in-flight calls, and join the event loop
        thread. A no-op unless the skeleton has been started.

        Called from the skeleton's own event loop thread, the shutdown is
        only scheduled.
        """
        if self._state is SkeletonState.FRESH and not self._start_requested:
            return

        loop = self._loop
        if self.is_running and loop is not None and not loop.is_closed():
            try:
                asyncio.run_coroutine_threadsafe(self._shutdown(None), loop)
            except RuntimeError as exc:
                self.debug("Skeleton loop already closed: %s", exc)

        if self._thread is None or threading.current_thread() is self._thread:
            return

        if not self._stopped.wait(self.config.stop_timeout):
            self.warning("Skeleton on %s did not stop within %ss", self._address, self.config.stop_timeout)
        if self._thread.is_alive():
            self._thread.join(self.config.stop_timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the skeleton has stopped. Returns False on timeout.
        """
        return self._stopped.wait(timeout)

    def __enter__(self) -> "Skeleton":
        return self.start()

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.stop()

    def __repr__(self) -> str:
        return "<Skeleton {0} on {1} ({2})>".format(
            self.interface.name, self._address, self._state.value
        )

    # -- hooks -------------------------------------------------------------

    def on_listen_error(self, cause: BaseException) -> bool:
        """
        Called for a transient accept() failure. Return True to keep
        accepting, False to stop the skeleton with ``cause``.
        """
        self.warning("Transient accept error on %s: %s", self._address, cause)
        return True

    def on_service_error(self, cause: BaseException) -> None:
        """
        Called when serving a single connection failed. Never stops the
        skeleton.
        """
        self.debug("Connection failed: %s", ExceptionFormatter.format_exception_chain(cause))

    def on_stopped(self, cause: Optional[BaseException]) -> None:
        """
        Called exactly once when the skeleton stops; ``cause`` is None for a
        requested stop.
        """
        if cause is not None:
            self.error(
                "Skeleton on %s stopped: %s",
                self._address,
                ExceptionFormatter.format_exception_chain(cause),
            )

    def _report_listen_error(self, cause: BaseException) -> bool:
        try:
            return bool(self.on_listen_error(cause))
        except Exception as exc:
            self.exception("on_listen_error hook failed: %s", exc)
            return False

    def _report_service_error(self, cause: BaseException) -> None:
        try:
            self.on_service_error(cause)
        except Exception as exc:
            self.exception("on_service_error hook failed: %s", exc)

    def _notify_stopped(self, cause: Optional[BaseException]) -> None:
        try:
            self.on_stopped(cause)
        except Exception as exc:
            self.exception("on_stopped hook failed: %s", exc)

    # -- lifecycle internals ----------------------------------------------

    def _bind(self, endpoint: Endpoint) -> socket.socket:
        host = endpoint.bind_host
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        # An IPv6 wildcard also accepts IPv4 peers where the platform allows it
        dualstack = (
            family == socket.AF_INET6
            and endpoint.is_wildcard
            and socket.has_dualstack_ipv6()
        )
        listener = socket.create_server(
            (host, endpoint.port),
            family=family,
            backlog=self.config.accept_backlog,
            dualstack_ipv6=dualstack,
        )
        listener.setblocking(False)
        return listener

    def _mark_stopped(self, cause: Optional[BaseException]) -> bool:
        with self._state_lock:
            if self._state is SkeletonState.STOPPED:
                return False
            self._state = SkeletonState.STOPPED
            self._stop_cause = cause
            return True

    def _close_listener(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        failure: Optional[BaseException] = None
        try:
            asyncio.set_event_loop(loop)
            loop.run_until_complete(self._async_serve())
        except Exception as exc:
            failure = exc
            self.error("Skeleton event loop failed: %s", exc, exc_info=True)
        finally:
            self._close_listener()
            if self._mark_stopped(failure):
                self._notify_stopped(failure)
            self._finalize_event_loop(loop)
            self._ready.set()
            self._stopped.set()

    def _finalize_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Cancel leftover tasks, release the worker pool, and close the loop.
        """
        if loop.is_running():
            return

        try:
            pending_tasks = [task for task in asyncio.all_tasks(loop) if not task.done()]
            for task in pending_tasks:
                task.cancel()
            if pending_tasks:
                loop.run_until_complete(
                    asyncio.gather(*pending_tasks, return_exceptions=True)
                )
        except Exception as e:
            self.warning("Error while cancelling pending skeleton tasks: %s", e)

        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except Exception as e:
            self.warning("Error while shutting down async generators: %s", e)

        if self._executor is not None:
            self._executor.shutdown(wait=True)

        asyncio.set_event_loop(None)
        loop.close()

    async def _async_serve(self) -> None:
        with self._state_lock:
            if self._state is not SkeletonState.FRESH:
                return
            self._state = SkeletonState.RUNNING

        self._closed = asyncio.get_running_loop().create_future()
        self._acceptor = asyncio.get_running_loop().create_task(self._accept_loop())
        self._ready.set()
        await self._closed

    async def _shutdown(self, cause: Optional[BaseException]) -> None:
        if self._closed is None or self._draining:
            return
        self._draining = True
        try:
            first = self._mark_stopped(cause)

            acceptor = self._acceptor
            if acceptor is not None and acceptor is not asyncio.current_task():
                acceptor.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await acceptor
            self._close_listener()

            for task in list(self._reading):
                task.cancel()
            if self._connections:
                self.debug(
                    "Waiting for %d in-flight connection(s), %d idle cancelled",
                    len(self._connections),
                    len(self._reading),
                )
                await asyncio.gather(*list(self._connections), return_exceptions=True)

            if first:
                self._notify_stopped(cause)
            self.info("Skeleton on %s stopped", self._address)
        finally:
            self._closed.set_result(None)

    # -- serving -----------------------------------------------------------

    async def _accept_connection(
        self, loop: asyncio.AbstractEventLoop
    ) -> Tuple[socket.socket, Any]:
        return await loop.sock_accept(self._listener)

    async def _accept_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                conn, peer = await self._accept_connection(loop)
            except Exception as exc:
                if isinstance(exc, OSError) and exc.errno in TRANSIENT_ACCEPT_ERRNOS:
                    if self._report_listen_error(exc):
                        if exc.errno in RESOURCE_EXHAUSTION_ERRNOS:
                            await asyncio.sleep(RESOURCE_BACKOFF_SECONDS)
                        continue
                else:
                    self.debug("Fatal accept error on %s: %s", self._address, exc)
                self._shutdown_task = loop.create_task(self._shutdown(exc))
                return

            task = loop.create_task(self._serve_connection(conn, peer))
            self._connections.add(task)
            task.add_done_callback(self._connections.discard)

    async def _serve_connection(self, conn: socket.socket, peer: Any) -> None:
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except OSError as exc:
            conn.close()
            self._report_service_error(
                ExceptionTranslator.as_transport_error(exc, peer=str(peer))
            )
            return

        try:
            if self._draining:
                return
            reply = await self._handle_request(reader, peer)
            writer.write(self._encode_reply(reply))
            await writer.drain()
        except Exception as exc:
            self._report_service_error(
                ExceptionTranslator.as_transport_error(exc, peer=str(peer))
            )
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as exc:
                self.debug("Error while closing connection from %s: %s", peer, exc)

    async def _read_request(self, reader: asyncio.StreamReader) -> RequestFrame:
        header = await reader.readexactly(HEADER_SIZE)
        body = await reader.readexactly(self._codec.read_header(header, KIND_REQUEST))
        return self._codec.decode_request(header + body)

    def _error_reply(self, error: BaseException) -> ReplyFrame:
        self._report_service_error(error)
        return ReplyFrame.error(ErrorDescriptor.from_exception(error))

    async def _handle_request(self, reader: asyncio.StreamReader, peer: Any) -> ReplyFrame:
        task = asyncio.current_task()
        self._reading.add(task)
        try:
            request = await asyncio.wait_for(
                self._read_request(reader), self.config.request_timeout
            )
        except asyncio.IncompleteReadError as exc:
            return self._error_reply(
                FramingError(
                    "Connection closed before the request was complete",
                    cause=exc,
                    peer=str(peer),
                )
            )
        except SerializationError as exc:
            return self._error_reply(exc)
        except asyncio.TimeoutError as exc:
            return self._error_reply(
                TransportError("Timed out reading request", cause=exc, peer=str(peer))
            )
        finally:
            self._reading.discard(task)

        method = self._dispatch.get(request.key)
        if method is None or len(request.args) != len(method.param_names):
            return self._error_reply(
                NoSuchMethodError(
                    selector=request.selector,
                    param_types=request.param_types,
                    interface=self.interface.name,
                )
            )

        target = getattr(self._impl, method.selector)
        try:
            if inspect.iscoroutinefunction(target):
                result = await target(*request.args)
            else:
                result = await asyncio.get_running_loop().run_in_executor(
                    self._executor, functools.partial(target, *request.args)
                )
        except Exception as exc:
            error = ExceptionTranslator.unwrap_transport(exc)
            self.debug(
                "%s.%s raised %s",
                self.interface.name,
                method.selector,
                ExceptionFormatter.format_exception(error),
            )
            return ReplyFrame.error(ErrorDescriptor.from_exception(error))

        if method.returns_unit:
            return ReplyFrame.ok_unit()
        return ReplyFrame.ok(result)

    def _encode_reply(self, reply: ReplyFrame) -> bytes:
        try:
            return self._codec.encode_reply(reply)
        except SerializationError as exc:
            self._report_service_error(exc)
            return self._codec.encode_reply(
                ReplyFrame.error(ErrorDescriptor.from_exception(exc))
            )


__all__ = [
    "Skeleton",
    "SkeletonState",
    "TRANSIENT_ACCEPT_ERRNOS",
]
