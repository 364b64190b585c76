"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together:

    SocketServer.accept() ──► ThreadPool.submit(_process_connection, conn)
                                        │
                                        ▼  (worker thread)
    Connection.read_request() ─► RequestParser.parse() ─► middleware ─► Router
                                                                         │
    Connection.send_response(response.to_bytes()) ◄──────────────────────┘
                                        │
                                  Connection.close()

=============================================================================
ROUTES
=============================================================================

    /                 200 OK, empty body
    /echo/<message>   echo handler        (/echo alone → 400)
    /user-agent       user_agent handler
    /files/<name>     FileHandler         (/files alone → 400)
    anything else     404 Not Found

=============================================================================
FAILURE HANDLING
=============================================================================

Every failure stays inside its own connection and, where a response can
still be written, becomes an HTTP status:

    client closed / socket error    → closed, nothing sent
    read timeout                    → 408
    request over max_request_size   → 413
    malformed request line/header   → 400
    handler raised                  → 500
    worker pool saturated           → 503

One request per connection; the connection is closed after the response.
=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, RequestTooLarge, ThreadPool
from .handlers import echo, user_agent, FileHandler
from .http import (
    HTTPRequest, HTTPResponse, RequestParser, HTTPParseError,
    HTTPStatus, ResponseBuilder, Router, internal_error, ok,
)
from .middleware import Middleware, MiddlewarePipeline, LoggingMiddleware


logger = logging.getLogger(__name__)


def index(request: HTTPRequest) -> HTTPResponse:
    """GET / is always 200 with an empty body, whatever the headers."""
    return ok()


def build_router(directory: str = ".") -> Router:
    """
    Register the fixed routes in precedence order.

    The bare "/echo" and "/files" are claimed by their handlers (which
    answer 400) rather than falling through to 404.
    """
    files = FileHandler(directory)

    router = Router()
    router.exact("/", index)
    router.exact("/echo", echo)
    router.prefix("/echo/", echo)
    router.exact("/user-agent", user_agent)
    router.exact("/files", files.handle, name="files")
    router.prefix("/files/", files.handle, name="files")
    return router


class HTTPServer:
    """
    HTTP/1.1 server: one request per connection, thread pool concurrency.

    Usage:
        server = HTTPServer(ServerConfig(directory="/tmp/data"))
        server.use(LoggingMiddleware())
        server.run()            # Blocks until SIGINT/SIGTERM or stop()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser()

        self._router = build_router(self.config.directory)
        self._middleware = MiddlewarePipeline()

        # middleware.wrap(router.handle), built by run()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. First added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, configured ones before."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start serving. Blocks until stop() or SIGINT/SIGTERM.

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()
        self._running = True

        logger.info(
            f"Starting HTTP server on {self.config.host}:{self.config.port} "
            f"(files from {self.config.directory!r}, "
            f"{self.config.min_workers}-{self.config.max_workers} workers)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask the accept loop to exit; run() then shuts the pool down."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("minihttpd").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a new connection for a worker (runs on the accept thread).

        Never blocks: with the queue full the client gets 503 right away.
        """
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=False,
            )
        except RuntimeError:
            submitted = False  # Pool already shutting down

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            # On the accept thread: no lingering drain
            conn.abort()

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on ``conn`` (runs in a worker thread).

        read → parse → route → respond → close
        """
        with conn:
            # ─────────────────────────────────────────────────────────────
            # READ
            # ─────────────────────────────────────────────────────────────
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                logger.info(f"[{conn.id}] Request read timeout")
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                return
            except RequestTooLarge as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                return
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                logger.debug(f"[{conn.id}] Closed by client before sending a request")
                return

            # ─────────────────────────────────────────────────────────────
            # PARSE
            # ─────────────────────────────────────────────────────────────
            conn.state = ConnectionState.PROCESSING
            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send_error(conn, e.status_code)
                return

            logger.debug(f"[{conn.id}] request: {request.method} {request.path} {request.version}")
            logger.debug(f"[{conn.id}] request headers: {request.headers}")

            # ─────────────────────────────────────────────────────────────
            # ROUTE (middleware + router)
            # ─────────────────────────────────────────────────────────────
            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            # ─────────────────────────────────────────────────────────────
            # RESPOND
            # ─────────────────────────────────────────────────────────────
            response.headers["Connection"] = "close"
            conn.send_response(response.to_bytes(self.config.server_name))

    def _send_error(self, conn: Connection, status: int):
        """
        Best-effort error response for failures outside the handlers.
        The caller closes the connection afterwards.
        """
        response = (ResponseBuilder()
            .status(status)
            .close_connection()
            .build())

        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Server with the standard middleware (access logging) installed.

        app = create_app(ServerConfig(directory="/tmp/data"))
        app.run()
    """
    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=server.config.log_format))
    return server
