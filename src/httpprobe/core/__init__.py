"""
=============================================================================
NETWORKING CORE
=============================================================================

Sockets and threads underneath the HTTP layer.

    SocketServer ──accept()──► Connection ──submit()──► ThreadPool worker
        │                          │                          │
    bind / listen            buffered reads,            runs the HTTP
    signal handling          response and chunk         keep-alive loop
                             writes, clean close        for one connection

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool


__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
