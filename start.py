#!/usr/bin/env python3
"""
Launch the RozgarAI API under uvicorn.

Binds dual-stack ([::] serving IPv4 and IPv6) when the host supports it and
falls back to 0.0.0.0 otherwise.

Environment variables:
- BIND_ADDRESS: explicit bind address (default: auto)
- PORT: HTTP port (default: 5000)
- LOG_LEVEL: uvicorn log level (default: info)
"""

import asyncio
import os
import socket
import sys

import uvicorn

APP = "rozgar_api.main:app"


def dualstack_socket(port: int) -> socket.socket | None:
    """Return a bound [::] socket with IPV6_V6ONLY off, or None if unsupported."""
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    except OSError:
        return None

    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        sock.bind(("::", port))
    except (AttributeError, OSError):
        sock.close()
        return None
    return sock


def main() -> None:
    port = int(os.getenv("PORT", "5000"))
    bind_address = os.getenv("BIND_ADDRESS", "auto")
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    sock = dualstack_socket(port) if bind_address == "auto" else None

    if sock is None:
        host = "0.0.0.0" if bind_address == "auto" else bind_address
        print(f"Starting {APP} on {host}:{port}", file=sys.stderr)
        uvicorn.run(APP, host=host, port=port, log_level=log_level)
        return

    print(f"Starting {APP} on dual-stack [::]:{port}", file=sys.stderr)
    sock.listen(128)
    sock.setblocking(False)
    server = uvicorn.Server(uvicorn.Config(APP, log_level=log_level))
    asyncio.run(server.serve(sockets=[sock]))


if __name__ == "__main__":
    main()
