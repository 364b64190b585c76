"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from pathlib import Path
from typing import Callable, Generator, List, Tuple
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttpd import HTTPServer, ServerConfig, create_app
from minihttpd.http import HTTPResponse


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/hello HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: curl/7.81\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request writing a file."""
    body = b"hello, file"
    return (
        b"POST /files/note.txt HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config(tmp_path: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        directory=str(tmp_path),
        log_level="WARNING",
    )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.stop()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def send(self, *chunks: bytes, pause: float = 0.0, timeout: float = 5.0) -> bytes:
        """
        Send raw request bytes and read until the server closes.

        Several chunks are written as separate send() calls, with ``pause``
        seconds between them, to exercise reassembly on the server.
        """
        with socket.create_connection(self.address, timeout=timeout) as sock:
            for index, chunk in enumerate(chunks):
                if index and pause:
                    time.sleep(pause)
                sock.sendall(chunk)
            return recv_all(sock)

    def request(self, *chunks: bytes, **kwargs) -> HTTPResponse:
        return HTTPResponse.from_bytes(self.send(*chunks, **kwargs))

    def connect(self, timeout: float = 5.0) -> socket.socket:
        """A raw client socket, for tests that drive the connection by hand."""
        return socket.create_connection(self.address, timeout=timeout)

    @staticmethod
    def read_response(sock: socket.socket) -> HTTPResponse:
        return HTTPResponse.from_bytes(recv_all(sock))


def recv_all(sock: socket.socket) -> bytes:
    """Read until EOF."""
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk


@pytest.fixture
def make_server(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """
    Factory for running servers; keyword arguments override ``config``.

    Every server started through it is stopped at teardown.
    """
    started: List[TestServer] = []

    def factory(**overrides) -> TestServer:
        for name, value in overrides.items():
            setattr(config, name, value)
        test_srv = TestServer(create_app(config))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(make_server) -> TestServer:
    """A running server with the default test configuration."""
    return make_server()
