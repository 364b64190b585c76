"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read from a socket into structured request objects.

    b"GET /echo/hi HTTP/1.1\r\nUser-Agent: curl/7.81\r\n\r\n"
      │                        │                          │
      │                        │                          └── body (remaining)
      │                        └── header block  → [Header, ...]
      └── request line         → Request(method, path, http_version)

=============================================================================
PARSER CONTRACT
=============================================================================

Each parsing step takes a byte slice and returns the parsed value together
with the bytes it did NOT consume:

    Request.from_bytes(data)  -> (Request, remaining)
    Header.from_bytes(data)   -> (Header, remaining)
    Header.parse_all(data)    -> ([Header, ...], remaining)

That makes the steps chainable: the remaining bytes of the request line are
the input of the header parser, and whatever the header parser leaves over is
the request body.

The parsers are pure. They never block, never touch a socket, and keep no
reference to the input once they return.

=============================================================================
LENIENCY
=============================================================================

Bytes are decoded as UTF-8 with errors="replace". A header value containing
invalid UTF-8 is accepted (with U+FFFD in place of the bad bytes) rather
than rejected. Only the grammar can make a parse fail:

    MalformedRequestLine  - not "METHOD SP PATH SP HTTP/1.1 CRLF"
    MalformedHeader       - not "NAME: VALUE CRLF"

Header names are kept exactly as sent: no lowercasing, no merging of
duplicates. Lookups are exact-name, first match wins.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import re


CRLF = b"\r\n"


class HTTPParseError(Exception):
    """
    Raised when request parsing fails.

    Carries the HTTP status the connection loop answers with before
    closing the connection.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class MalformedRequestLine(HTTPParseError):
    """The first line is not METHOD SP PATH SP HTTP/1.1 CRLF."""


class MalformedHeader(HTTPParseError):
    """A header line is not NAME ": " VALUE CRLF."""


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def _preview(data: bytes, limit: int = 40) -> str:
    """Short printable excerpt of the offending bytes for error messages."""
    text = _decode(data[:limit])
    return repr(text + ("..." if len(data) > limit else ""))


@dataclass(frozen=True)
class Request:
    """
    The parsed request line.

    Attributes:
        method: Request method token as sent ("GET", "POST", ...).
        path: Raw request target, leading slash included, NOT URL-decoded.
        http_version: Always "HTTP/1.1"; anything else fails to parse.
    """

    method: str
    path: str
    http_version: str = "HTTP/1.1"

    # METHOD and PATH are runs of non-space bytes. One or more spaces
    # separate the three parts. The version is matched literally.
    REQUEST_LINE_PATTERN = re.compile(rb"([^ \r\n]+) +([^ \r\n]+) +(HTTP/1\.1)\r\n")

    @classmethod
    def from_bytes(cls, data: bytes) -> Tuple["Request", bytes]:
        """
        Parse the request line at the start of ``data``.

        Returns:
            (Request, remaining) where remaining starts right after the CRLF.

        Raises:
            MalformedRequestLine: If the line does not match the grammar.
        """
        match = cls.REQUEST_LINE_PATTERN.match(data)
        if not match:
            raise MalformedRequestLine(f"Invalid request line: {_preview(data)}")

        method, path, version = match.groups()
        request = cls(
            method=_decode(method),
            path=_decode(path),
            http_version=_decode(version),
        )
        return request, data[match.end():]


@dataclass(frozen=True)
class Header:
    """One ``Name: value`` pair, exactly as it appeared on the wire."""

    name: str
    value: str

    # NAME runs up to the colon, VALUE up to the carriage return.
    # Both must be non-empty.
    HEADER_PATTERN = re.compile(rb"([^:\r\n]+): ([^\r]+)\r\n")

    @classmethod
    def from_bytes(cls, data: bytes) -> Tuple["Header", bytes]:
        """
        Parse a single header line at the start of ``data``.

        Raises:
            MalformedHeader: If the line does not match the grammar.
        """
        match = cls.HEADER_PATTERN.match(data)
        if not match:
            raise MalformedHeader(f"Invalid header line: {_preview(data)}")

        name, value = match.groups()
        return cls(name=_decode(name), value=_decode(value)), data[match.end():]

    @classmethod
    def parse_all(cls, data: bytes) -> Tuple[List["Header"], bytes]:
        """
        Parse header lines until the end of the header block.

        =====================================================================
        WHERE DOES THE HEADER BLOCK END?
        =====================================================================

            Host: x\r\n          ← header line, its CRLF is consumed
            \r\n                 ← blank line: seen here as a leading CRLF
            body...              ← remaining

        The "\r\n\r\n" terminator on the wire is the last header's CRLF
        followed by the blank line. Since every header line consumes its
        own CRLF, the blank line shows up as input that *starts* with CRLF.
        It is consumed and parsing stops, so ``remaining`` begins exactly
        at the body.

        Parsing also stops when no bytes are left (a request that ended
        right after its last header line).
        =====================================================================

        Returns:
            (headers in input order, remaining bytes)

        Raises:
            MalformedHeader: On the first line that is not a valid header.
        """
        headers: List[Header] = []
        remaining = data

        while remaining:
            if remaining.startswith(CRLF):
                remaining = remaining[len(CRLF):]
                break

            header, remaining = cls.from_bytes(remaining)
            headers.append(header)

        return headers, remaining


def find_header(headers: List[Header], name: str) -> Optional[str]:
    """Value of the first header named exactly ``name``, or None."""
    for header in headers:
        if header.name == name:
            return header.value
    return None


@dataclass
class HTTPRequest:
    """
    Everything a route handler gets to see about one request.

    =========================================================================
    REQUEST LIFECYCLE
    =========================================================================

        Raw bytes        RequestParser.parse()      HTTPRequest       Handler
        from socket   ──────────────────────►    (method, path,  ──►  echo,
        b"GET /..."                                headers, body)     files, ...

    The request is created per read and discarded after the response has
    been written.
    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: List[Header] = field(default_factory=list)
    body: bytes = b""

    client_address: Tuple[str, int] = ("", 0)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Look a header up by exact name (case-sensitive, first match wins).

        Example:
            request.get_header("User-Agent")   # "curl/7.81"
            request.get_header("user-agent")   # None
        """
        value = find_header(self.headers, name)
        return default if value is None else value

    @property
    def content_length(self) -> Optional[int]:
        """
        The Content-Length header as a non-negative int.

        None when the header is missing or is not a valid length. Callers
        that need a body treat both cases as a bad request.
        """
        raw = self.get_header("Content-Length")
        if raw is None:
            return None
        try:
            length = int(raw.strip())
        except ValueError:
            return None
        return length if length >= 0 else None

    @property
    def user_agent(self) -> Optional[str]:
        return self.get_header("User-Agent")


class RequestParser:
    """
    Composes the request-line and header parsers into one call.

    The connection hands over the complete bytes of one request (header
    block plus whatever body followed it); the parser returns an
    HTTPRequest whose ``body`` is everything after the blank line.
    """

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Raises:
            MalformedRequestLine: Bad first line.
            MalformedHeader: Bad header line.
        """
        request_line, remaining = Request.from_bytes(data)
        headers, body = Header.parse_all(remaining)

        return HTTPRequest(
            method=request_line.method,
            path=request_line.path,
            version=request_line.http_version,
            headers=headers,
            body=body,
            client_address=client_address,
        )


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser().parse(data, client_address)
