#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Ping/pong example server.

Serves a PingServerFactory on ``EASYRMI_PING_HOST:EASYRMI_PING_PORT``
(default ``127.0.0.1:8000``) until interrupted.
"""

import os

from easyrmi import Skeleton
from ping_service import PingServerFactory, PingServerFactoryImpl

HOST = os.getenv("EASYRMI_PING_HOST", "127.0.0.1")
PORT = int(os.getenv("EASYRMI_PING_PORT", "8000"))


class PingPongServer:
    """
    Hosts the factory skeleton and blocks until it stops.
    """

    def run(self) -> None:
        factory = PingServerFactoryImpl(HOST)
        skeleton = Skeleton(PingServerFactory, factory, (HOST, PORT))
        skeleton.start()
        print(f"PingServerFactory listening on {skeleton.address()}")
        try:
            skeleton.wait()
        except KeyboardInterrupt:
            print("Shutting down")
        finally:
            skeleton.stop()
            factory.close()


if __name__ == "__main__":
    PingPongServer().run()
