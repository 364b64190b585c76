"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows what HTTP looks like on the wire, and nothing that
knows about sockets:

    request.py       bytes → Request / Header / HTTPRequest
    response.py      HTTPResponse → bytes (and back, for tests)
    router.py        path → handler
    status_codes.py  HTTPStatus enum with reason phrases

HTTP/1.1 message shape (both directions):

    start-line CRLF
    *( header-field CRLF )
    CRLF
    [ message-body ]          ← length given by Content-Length
=============================================================================
"""

from .request import (
    HTTPRequest,
    RequestParser,
    Request,
    Header,
    HTTPParseError,
    MalformedRequestLine,
    MalformedHeader,
    parse_request,
)
from .response import (
    HTTPResponse,
    ResponseBuilder,
    empty,
    ok,             # 200 OK
    created,        # 201 Created
    bad_request,    # 400 Bad Request
    forbidden,      # 403 Forbidden
    not_found,      # 404 Not Found
    internal_error, # 500 Internal Server Error
)
from .router import Router, Route, MatchType
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "Request",
    "Header",
    "HTTPParseError",
    "MalformedRequestLine",
    "MalformedHeader",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "empty",
    "ok",
    "created",
    "bad_request",
    "forbidden",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "MatchType",

    "HTTPStatus",
]
