"""
Unit tests for Connection reading, writing and closing.

A socketpair stands in for an accepted TCP connection: one end is handed to
Connection, the test drives the other.
"""

import socket
import threading
import time

import pytest

from minihttpd.core.connection import Connection, ConnectionState, RequestTooLarge


@pytest.fixture
def socket_pair():
    server_sock, client_sock = socket.socketpair()
    yield server_sock, client_sock
    for sock in (server_sock, client_sock):
        try:
            sock.close()
        except OSError:
            pass


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 2.0)
    return Connection(socket=sock, address=("test", 0), **kwargs)


class TestReadRequest:
    """Tests for Connection.read_request."""

    def test_read_headers_only(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.state is ConnectionState.READING

    def test_read_with_body(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_buffer_grows_over_many_reads(self, socket_pair):
        """Test a request far larger than one recv() call."""
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, buffer_size=64)

        body = b"x" * 5000
        raw = (
            b"POST /files/big HTTP/1.1\r\n"
            + b"X-Long: " + b"h" * 300 + b"\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )
        sender = threading.Thread(target=client_sock.sendall, args=(raw,))
        sender.start()

        assert conn.read_request() == raw
        assert conn.bytes_read == len(raw)
        sender.join()

    def test_terminator_split_across_reads(self, socket_pair):
        """Test one-byte reads, so every \\r\\n\\r\\n straddles two recv() calls."""
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, buffer_size=1)

        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: 2\r\n\r\nab"
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_large_body_reads_in_linear_time(self, socket_pair):
        """Test a multi-megabyte body read 1 KiB at a time."""
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, buffer_size=1024)

        body = b"y" * (4 * 1024 * 1024)
        raw = f"POST /files/big HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n".encode() + body
        sender = threading.Thread(target=client_sock.sendall, args=(raw,))
        sender.start()

        started = time.monotonic()
        data = conn.read_request()
        elapsed = time.monotonic() - started
        sender.join()

        assert len(data) == len(raw)
        assert data.endswith(b"\r\n\r\n" + body)
        assert elapsed < 5.0

    def test_body_arriving_in_pieces(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        def send_slowly():
            client_sock.sendall(b"POST /files/a HTTP/1.1\r\nContent-Len")
            time.sleep(0.05)
            client_sock.sendall(b"gth: 6\r\n\r\nabc")
            time.sleep(0.05)
            client_sock.sendall(b"def")

        sender = threading.Thread(target=send_slowly)
        sender.start()

        assert conn.read_request().endswith(b"\r\n\r\nabcdef")
        sender.join()

    def test_bytes_after_request_are_discarded(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(
            b"POST /files/a HTTP/1.1\r\nContent-Length: 2\r\n\r\nabGET / HTTP/1.1\r\n\r\n"
        )

        assert conn.read_request().endswith(b"\r\n\r\nab")
        assert conn._buffer == b""

    def test_content_length_name_is_exact(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"POST / HTTP/1.1\r\ncontent-length: 3\r\n\r\nabc")

        assert conn.read_request() == b"POST / HTTP/1.1\r\ncontent-length: 3\r\n\r\n"

    def test_invalid_content_length_reads_no_body(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\nxyz")

        assert conn.read_request() == b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n"

    def test_eof_before_anything(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_eof_mid_headers_returns_partial(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"GET / HTTP/1.1\r\nHo")
        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read_request() == b"GET / HTTP/1.1\r\nHo"

    def test_eof_mid_body_returns_short_body(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")
        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read_request().endswith(b"\r\n\r\nabc")

    def test_headers_too_large(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, buffer_size=64, max_request_size=256)

        client_sock.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 1000)

        with pytest.raises(RequestTooLarge):
            conn.read_request()

    def test_declared_body_too_large(self, socket_pair):
        """Test rejection before the oversized body is read."""
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, max_request_size=1024)

        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: 100000\r\n\r\n")

        with pytest.raises(RequestTooLarge):
            conn.read_request()

    def test_timeout(self, socket_pair):
        server_sock, _ = socket_pair
        conn = make_connection(server_sock, timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_timeout_mid_request(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock, timeout=0.1)

        client_sock.sendall(b"GET / HTTP/1.1\r\n")

        with pytest.raises(TimeoutError):
            conn.read_request()


class TestSendAndClose:
    """Tests for Connection.send_response and Connection.close."""

    def test_send_response(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        assert conn.bytes_sent == 19
        assert conn.state is ConnectionState.WRITING
        assert client_sock.recv(100) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_send_to_closed_peer(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)
        client_sock.close()

        assert conn.send_response(b"x" * 100000) is False
        assert conn.bytes_sent == 0

    def test_close_signals_eof(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)
        conn.send_response(b"done")

        client_sock.settimeout(2.0)
        closer = threading.Thread(target=conn.close)
        closer.start()

        assert client_sock.recv(100) == b"done"
        assert client_sock.recv(100) == b""
        client_sock.close()
        closer.join(timeout=2.0)

        assert conn.state is ConnectionState.CLOSED

    def test_close_drain_is_bounded(self, socket_pair):
        """Test that a peer that never stops sending cannot stall close()."""
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)
        stop = threading.Event()

        def keep_sending():
            try:
                while not stop.is_set():
                    client_sock.sendall(b"x" * 16)
                    time.sleep(0.05)
            except OSError:
                pass  # Server end is gone

        sender = threading.Thread(target=keep_sending, daemon=True)
        sender.start()

        started = time.monotonic()
        conn.close()
        elapsed = time.monotonic() - started
        stop.set()
        sender.join(timeout=2.0)

        assert conn.state is ConnectionState.CLOSED
        assert elapsed < 1.5

    def test_abort_does_not_wait_for_peer(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn.send_response(b"HTTP/1.1 503 Service Unavailable\r\n\r\n")

        started = time.monotonic()
        conn.abort()

        assert time.monotonic() - started < 0.5
        assert conn.state is ConnectionState.CLOSED

        client_sock.settimeout(2.0)
        assert client_sock.recv(100).startswith(b"HTTP/1.1 503")

    def test_abort_after_close_is_noop(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)
        client_sock.close()

        conn.close()
        conn.abort()

        assert conn.state is ConnectionState.CLOSED

    def test_close_is_idempotent(self, socket_pair):
        server_sock, client_sock = socket_pair
        conn = make_connection(server_sock)
        client_sock.close()

        conn.close()
        conn.close()

        assert conn.state is ConnectionState.CLOSED

    def test_context_manager_closes(self, socket_pair):
        server_sock, client_sock = socket_pair
        client_sock.close()

        with make_connection(server_sock) as conn:
            assert conn.state is ConnectionState.NEW

        assert conn.state is ConnectionState.CLOSED

    def test_client_ip(self, socket_pair):
        server_sock, _ = socket_pair
        assert make_connection(server_sock).client_ip == "test"
