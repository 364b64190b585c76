"""
Echo handler: GET /echo/<message> answers with <message> as plain text.
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, bad_request
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

ECHO_PREFIX = "/echo/"


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    Reflect everything after the first "/echo/" in the path.

        GET /echo/hello  → 200, Content-Type: text/plain, body "hello"
        GET /echo/       → 200, empty body
        GET /echo        → 400 (nothing to split on)

    The message is the raw path text: no URL-decoding.
    """
    _, separator, message = request.path.partition(ECHO_PREFIX)
    if not separator:
        logger.debug(f"Echo path without {ECHO_PREFIX!r}: {request.path}")
        return bad_request()

    return (ResponseBuilder()
        .status(HTTPStatus.OK)
        .text(message)
        .build())
