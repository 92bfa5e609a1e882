#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Ping/pong example client.

Usage: ``python client.py [host] [port]`` (defaults ``127.0.0.1 8000``).
"""

import sys

from easyrmi import make_stub
from ping_service import PingServerFactory


def run(host: str, port: int) -> int:
    factory = make_stub(PingServerFactory, (host, port))
    server = factory.make_ping_server()
    print(f"Got {server}")

    failed = 0
    for id_number in range(1, 5):
        reply = server.ping(id_number)
        print(reply)
        if reply != "Pong" + str(id_number):
            failed += 1
    print(f"4 Tests Completed, {failed} Tests Failed")
    return failed


if __name__ == "__main__":
    host = sys.argv[1] if len(sys.argv) > 1 else "127.0.0.1"
    port = int(sys.argv[2]) if len(sys.argv) > 2 else 8000
    sys.exit(1 if run(host, port) else 0)
