"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass. Built from CLI flags (__main__.py), from
environment variables (ServerConfig.from_env) or directly in code/tests:

    config = ServerConfig(port=0, directory="/tmp/data", log_level="DEBUG")
    config.validate()
=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    REQUESTS    max_request_size
    THREADING   min_workers, max_workers, queue_size
    FILES       directory
    LOGGING     log_level, log_format
    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind to."""

    port: int = 4221
    """Port to listen on. 0 lets the OS pick one (tests)."""

    backlog: int = 128
    """Accept queue length handed to listen()."""

    buffer_size: int = 1024
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Per-socket read/write timeout in seconds.
    A peer that stalls longer than this gets 408 and is disconnected.
    None = wait forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Upper bound on header block + body of one request.
    Anything larger is answered with 413 Payload Too Large.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started up front."""

    max_workers: int = 16
    """Hard cap on worker threads, i.e. on connections served at once."""

    queue_size: int = 100
    """
    Accepted connections allowed to wait for a worker.
    When full, new connections get 503 Service Unavailable.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "."
    """Root directory of the /files/ route."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows every read, parsed request line and header."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    server_name: str = "minihttpd/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTP_HOST       Server host (default: 127.0.0.1)
        HTTP_PORT       Server port (default: 4221)
        HTTP_WORKERS    Max worker threads (default: 16)
        HTTP_TIMEOUT    Socket timeout in seconds (default: 30)
        HTTP_DIRECTORY  Root of the /files/ route (default: .)
        HTTP_LOG_LEVEL  Logging level (default: INFO)
        """
        max_workers = int(os.getenv("HTTP_WORKERS", "16"))
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "4221")),
            min_workers=min(4, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            directory=os.getenv("HTTP_DIRECTORY", "."),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Fail fast on values the server cannot run with.

        Raises:
            ValueError: Describing the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}")
