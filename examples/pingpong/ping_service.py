#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Ping/pong service shared by the example server and client.

The server hosts a ``PingServerFactory``; each ``make_ping_server`` call
starts a fresh ``PingServer`` skeleton and hands the caller a stub to it.
"""

import threading
from abc import ABC, abstractmethod
from typing import List

from easyrmi import (
    Skeleton,
    TransportError,
    make_stub_from_skeleton_with_host,
    raises,
    remote_interface,
)


@remote_interface(name="pingpong.PingServer")
class PingServer(ABC):
    @abstractmethod
    @raises(TransportError)
    def ping(self, id_number: int) -> str:
        """Answer ``"Pong<id_number>"``."""


@remote_interface(name="pingpong.PingServerFactory")
class PingServerFactory(ABC):
    @abstractmethod
    @raises(TransportError)
    def make_ping_server(self) -> PingServer:
        """Start a new ping server and return a stub to it."""


class PingServerImpl(PingServer):
    def ping(self, id_number: int) -> str:
        return "Pong" + str(id_number)


class PingServerFactoryImpl(PingServerFactory):
    def __init__(self, host: str) -> None:
        self.host = host
        self._skeletons: List[Skeleton] = []
        self._lock = threading.Lock()

    def make_ping_server(self) -> PingServer:
        skeleton = Skeleton(PingServer, PingServerImpl(), (self.host, 0))
        skeleton.start()
        with self._lock:
            self._skeletons.append(skeleton)
        return make_stub_from_skeleton_with_host(PingServer, skeleton, self.host)

    def close(self) -> None:
        with self._lock:
            skeletons, self._skeletons = self._skeletons, []
        for skeleton in skeletons:
            skeleton.stop()
