"""
=============================================================================
MINIHTTPD - Minimal HTTP/1.1 Server on Raw Sockets
=============================================================================

A small HTTP/1.1 server with a fixed set of routes, built directly on the
socket module:

    GET  /                  200 OK
    GET  /echo/<message>    200, body is <message>
    GET  /user-agent        200, body is the User-Agent header
    GET  /files/<name>      200, body is the file's bytes (404 if missing)
    POST /files/<name>      201, request body written to the file
    *    anything else      404 Not Found

=============================================================================
PACKAGE LAYOUT
=============================================================================

    minihttpd/
    ├── config.py        ServerConfig (CLI flags, env vars, validation)
    ├── server.py        HTTPServer: accept → pool → read → parse → route
    ├── core/            sockets, connections, thread pool
    ├── http/            request parser, response serializer, router
    ├── handlers/        echo, user-agent, files
    └── middleware/      access logging

=============================================================================
GUARANTEES
=============================================================================

- One bad request never affects another connection: parse errors become
  400, I/O errors 500, and the accept loop keeps running.
- Reads are bounded by max_request_size (413 beyond it).
- Concurrency is bounded by the worker pool (503 when saturated).
- /files/ never reads or writes outside its root directory (403).
=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_app
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
