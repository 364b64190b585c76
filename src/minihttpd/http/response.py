"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Handlers return HTTPResponse objects; the connection loop serializes them
with to_bytes() and writes the result to the socket.

    HTTPResponse(               to_bytes()            socket.sendall()
      status=200,       ──────────────────────►   b"HTTP/1.1 200 OK\r\n
      headers={...},                                Content-Type: text/plain\r\n
      body=b"hello")                                Content-Length: 5\r\n
                                                    ...\r\n
                                                    \r\n
                                                    hello"

Every response carries Content-Length (0 for an empty body) so the client
knows where the body ends, and is followed by the server closing the
connection.

HTTPResponse.from_bytes() goes the other way and is what the tests use to
check what actually went over the wire.
=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple, Union
import re

from .request import Header
from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response: status, headers, body.

    Header names are stored as given. Insertion order is the order they are
    written in.
    """

    status: Union[HTTPStatus, int] = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    # Only set for responses parsed from bytes whose code is not an HTTPStatus
    reason: Optional[str] = None

    STATUS_LINE_PATTERN = re.compile(rb"(HTTP/\d\.\d) (\d{3}) ([^\r\n]*)\r\n")

    @property
    def phrase(self) -> str:
        if isinstance(self.status, HTTPStatus):
            return self.status.phrase
        return self.reason or "Unknown"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 404 Not Found"
        """
        return f"{self.version} {int(self.status)} {self.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, returning self for chaining."""
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    def to_bytes(self, server_name: Optional[str] = "minihttpd/1.0") -> bytes:
        """
        Serialize the response for socket.sendall().

            HTTP/1.1 200 OK\r\n                      ← status line
            Content-Type: text/plain\r\n             ← handler headers
            Content-Length: 5\r\n                    ← auto-added if missing
            Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n  ← auto-added if missing
            Server: minihttpd/1.0\r\n                ← auto-added if missing
            \r\n                                     ← end of headers
            hello                                    ← body, nothing after it

        Args:
            server_name: Value for the Server header. None or "" omits it.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if server_name and "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body

    @classmethod
    def from_bytes(cls, data: bytes) -> "HTTPResponse":
        """
        Parse a serialized response.

        The header block is read with the same Header parser used for
        requests. The body is cut to Content-Length when the header is
        present; otherwise everything after the blank line is the body.

        Raises:
            ValueError: If the status line is malformed.
            MalformedHeader: If a header line is malformed.
        """
        status, version, reason, remaining = cls._parse_status_line(data)
        headers, body = Header.parse_all(remaining)

        header_map: Dict[str, str] = {}
        for header in headers:
            header_map.setdefault(header.name, header.value)

        length = header_map.get("Content-Length")
        if length is not None and length.strip().isdigit():
            body = body[: int(length)]

        try:
            status = HTTPStatus(status)
            reason = None
        except ValueError:
            pass

        return cls(status=status, headers=header_map, body=body,
                   version=version, reason=reason)

    @classmethod
    def _parse_status_line(cls, data: bytes) -> Tuple[int, str, str, bytes]:
        match = cls.STATUS_LINE_PATTERN.match(data)
        if not match:
            raise ValueError(f"Invalid status line: {data[:40]!r}")
        version, code, reason = match.groups()
        return (
            int(code),
            version.decode("ascii"),
            reason.decode("utf-8", errors="replace"),
            data[match.end():],
        )


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("hello")
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status: Union[HTTPStatus, int] = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain") -> "ResponseBuilder":
        """
        Plain-text body with an explicit Content-Length.

        Content-Length is the length of the UTF-8 encoding, which is what
        actually goes on the wire.
        """
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        self._headers["Content-Length"] = str(len(self._body))
        return self

    def octets(self, data: bytes) -> "ResponseBuilder":
        """Binary body served as application/octet-stream."""
        self._body = data
        self._headers["Content-Type"] = "application/octet-stream"
        self._headers["Content-Length"] = str(len(data))
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

    Example: Mon, 19 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the responses the routes produce. Error responses carry no
# body: the status line says everything the client needs.
#
#     return ok()
#     return not_found()
#
# =============================================================================

def empty(status: Union[HTTPStatus, int]) -> HTTPResponse:
    """A response with the given status and no body."""
    return ResponseBuilder().status(status).build()


def ok(body: Union[str, bytes] = b"") -> HTTPResponse:
    """200 OK. A str body is sent as text/plain."""
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, str):
        builder.text(body)
    elif body:
        builder.body(body)
    return builder.build()


def created() -> HTTPResponse:
    """201 Created, empty body."""
    return empty(HTTPStatus.CREATED)


def bad_request() -> HTTPResponse:
    return empty(HTTPStatus.BAD_REQUEST)


def forbidden() -> HTTPResponse:
    return empty(HTTPStatus.FORBIDDEN)


def not_found() -> HTTPResponse:
    return empty(HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    """500. Never expose the underlying exception to the client."""
    return empty(HTTPStatus.INTERNAL_SERVER_ERROR)
