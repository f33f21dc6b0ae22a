"""
=============================================================================
CORE NETWORKING LAYER
=============================================================================

Transport for the media server: everything below HTTP.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──readable──► Connection ──submit──► ThreadPool      │
    │   (listening socket,         (one client socket:  (fixed number of │
    │    selector event loop)       buffered reads,      worker threads, │
    │         ▲                     raising sends)       unbounded queue)│
    │         └──────────── park() after a keep-alive response ─┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Concurrency model: one event loop thread plus N worker threads. The
event loop only accepts and waits; workers do all reading and writing
with blocking I/O. A worker holds a connection for one request (plus any
the client pipelined), so N is the number of requests in progress at the
same time, not the number of open connections.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # Listening socket and selector event loop
    "Connection",       # Client socket wrapper
    "ConnectionState",  # Connection lifecycle states
    "RequestTooLarge",  # Raised by Connection.read_request
    "ThreadPool",       # Fixed-size worker pool
]
