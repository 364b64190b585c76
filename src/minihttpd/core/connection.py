"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: reads one complete HTTP request from it,
writes one response back, closes it.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

A request sent by the client in one piece may arrive in several recv()
calls:

    Client sends:   b"POST /files/a HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"

    recv() → b"POST /files/a HTTP/1.1\r\nCont"
    recv() → b"ent-Length: 3\r\n\r\nab"
    recv() → b"c"

So reading is done in two phases:

    1. Accumulate until the header terminator \r\n\r\n is in the buffer.
    2. Read Content-Length more bytes after it (the body).

The buffer grows as needed but never past ``max_request_size``; a request
that would exceed it raises RequestTooLarge.

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

There is no keep-alive: after one response the connection is closed, and
any bytes the client sent beyond the first request are discarded.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSING ──► CLOSED
             │                                        ▲
             └── EOF / read error ────────────────────┘
=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"

# Upper bound on the whole drain in close(), however the peer trickles data
LINGER_TIMEOUT = 0.5

# recv() calls abort() makes to consume bytes that already arrived
ABORT_DRAIN_READS = 16


class RequestTooLarge(ValueError):
    """The request grew past the connection's max_request_size."""


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and close bookkeeping."""
    NEW = "new"                # Accepted, nothing read yet
    READING = "reading"        # Waiting for request bytes
    PROCESSING = "processing"  # Parsing and routing
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port).
        id: Short identifier used to tag log lines.
        state: Current ConnectionState.
        created_at: When the connection was accepted.
        bytes_read: Total bytes received so far.
        bytes_sent: Total bytes written so far.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_read: int = 0
    bytes_sent: int = 0

    # From ServerConfig
    buffer_size: int = 1024
    timeout: Optional[float] = 30.0
    max_request_size: int = 10 * 1024 * 1024

    # bytearray: appends are amortized O(1), bytes would copy on every recv()
    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes (header block plus the body declared by
            Content-Length), or None if the client closed the connection
            before sending anything.

            If the client closes mid-request, whatever arrived is returned
            and the parser decides whether it is usable.

        Raises:
            TimeoutError: No data within ``timeout`` seconds.
            RequestTooLarge: Request exceeds ``max_request_size``.
            OSError: Any other socket failure.
        """
        self.state = ConnectionState.READING

        try:
            # ─────────────────────────────────────────────────────────────
            # STEP 1: Read until we have the complete header block
            # ─────────────────────────────────────────────────────────────
            header_end = self._buffer.find(HEADER_TERMINATOR)
            while header_end == -1:
                chunk = self._recv()
                if not chunk:
                    if not self._buffer:
                        return None  # Closed without sending anything
                    return self._take(len(self._buffer))

                # The terminator may straddle the old end of the buffer
                search_from = max(0, len(self._buffer) - (len(HEADER_TERMINATOR) - 1))
                self._buffer += chunk
                self._check_size(len(self._buffer))
                header_end = self._buffer.find(HEADER_TERMINATOR, search_from)

            # ─────────────────────────────────────────────────────────────
            # STEP 2: Work out how much body follows
            # ─────────────────────────────────────────────────────────────
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._parse_content_length(bytes(self._buffer[:header_end]))

            request_end = body_start + content_length
            self._check_size(request_end)

            # ─────────────────────────────────────────────────────────────
            # STEP 3: Read the rest of the body
            # ─────────────────────────────────────────────────────────────
            while len(self._buffer) < request_end:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the handler sees a short body
                self._buffer += chunk

            return self._take(request_end)

        except socket.timeout:
            raise TimeoutError("Request read timeout")

    def _take(self, end: int) -> bytes:
        """Pop ``end`` bytes off the buffer and drop the rest."""
        request_data = bytes(self._buffer[:end])
        self._buffer = bytearray()
        logger.debug(f"[{self.id}] Read {len(request_data)} bytes")
        return request_data

    def _check_size(self, size: int):
        if size > self.max_request_size:
            raise RequestTooLarge(
                f"Request too large: {size} bytes (limit {self.max_request_size})"
            )

    def _recv(self) -> bytes:
        """recv() that maps an abrupt disconnect to EOF."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.bytes_read += len(data)
        return data

    def _parse_content_length(self, header_block: bytes) -> int:
        """
        Value of the first "Content-Length" header line, 0 if absent.

        Names are matched exactly, as the request parser does. An invalid
        value also counts as 0 here: the request is framed without a body
        and the handler that needs one rejects it.
        """
        text = header_block.decode("utf-8", errors="replace")
        for line in text.split("\r\n")[1:]:
            name, separator, value = line.partition(": ")
            if separator and name == "Content-Length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send ``data`` with sendall().

        Returns:
            True if everything was sent, False if the client went away.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-response.
        2. Drain whatever the client still sends, for LINGER_TIMEOUT seconds
           in total. A peer that keeps trickling bytes cannot extend it.
        3. close() releases the file descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        deadline = time.monotonic() + LINGER_TIMEOUT
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Includes socket.timeout

        self._release()

    def abort(self):
        """
        Close without lingering.

        For connections turned away on the accept thread, which must never
        wait on a client. Bytes that already arrived are consumed first
        (without blocking) so the close is less likely to become a reset
        that discards the response.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.setblocking(False)
            for _ in range(ABORT_DRAIN_READS):
                if not self.socket.recv(self.buffer_size):
                    break
        except OSError:
            pass  # BlockingIOError once nothing is buffered

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

        self._release()

    def _release(self):
        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed "
            f"(read {self.bytes_read} bytes, sent {self.bytes_sent} bytes, "
            f"{self.age:.3f}s)"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
