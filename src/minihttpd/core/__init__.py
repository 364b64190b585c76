"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer:

    SocketServer   listening socket + accept loop (main thread)
         │
         │  one Connection per accepted socket
         ▼
    ThreadPool     bounded set of worker threads + bounded queue
         │
         ▼
    Connection     buffered read of one request, sendall of one response,
                   graceful close

Thread-per-connection from a bounded pool: simple, fits blocking sockets,
and the pool bounds caps how many clients are served at once.
=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
]
