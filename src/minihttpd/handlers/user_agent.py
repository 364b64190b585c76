"""
User-Agent handler: GET /user-agent answers with the client's User-Agent.
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, bad_request
from ..http.status_codes import HTTPStatus


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """
    Reflect the first header named exactly "User-Agent".

    A request without one (or with only "user-agent") gets 400 Bad Request.
    """
    value = request.get_header("User-Agent")
    if value is None:
        return bad_request()

    return (ResponseBuilder()
        .status(HTTPStatus.OK)
        .text(value)
        .build())
