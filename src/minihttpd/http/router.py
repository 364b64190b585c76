"""
=============================================================================
URL ROUTING
=============================================================================

Maps a request path to exactly one handler.

Routes are checked in the order they were registered and the first match
wins. A route matches either the whole path (exact) or its beginning
(prefix):

    router.exact("/", index)                ← "/" only
    router.prefix("/echo/", echo)           ← "/echo/abc", "/echo/"
    router.exact("/user-agent", user_agent)
    router.prefix("/files/", files)

Registration order IS the precedence order, so a request can never be
claimed by two routes. Anything that matches nothing gets 404 Not Found.
=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional
import logging

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)


# Every handler takes the parsed request and returns the response to send.
Handler = Callable[[HTTPRequest], HTTPResponse]


class MatchType(Enum):
    EXACT = "exact"
    PREFIX = "prefix"


@dataclass
class Route:
    """
    A path pattern bound to a handler.

    Attributes:
        pattern: Literal path (EXACT) or path prefix (PREFIX).
        handler: Called with the request when the route matches.
        match_type: How ``pattern`` is compared with the request path.
        name: Label used in logs; defaults to the handler's name.
    """

    pattern: str
    handler: Handler
    match_type: MatchType = MatchType.EXACT
    name: Optional[str] = None

    def matches(self, path: str) -> bool:
        if self.match_type is MatchType.EXACT:
            return path == self.pattern
        return path.startswith(self.pattern)

    @property
    def label(self) -> str:
        return self.name or getattr(self.handler, "__name__", repr(self.handler))


class Router:
    """
    First-match-wins router over exact and prefix routes.

    Usage:
        router = Router()
        router.exact("/", lambda request: ok())
        router.prefix("/echo/", echo)

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(
        self,
        pattern: str,
        handler: Handler,
        match_type: MatchType = MatchType.EXACT,
        name: Optional[str] = None,
    ) -> Route:
        """Append a route. Later routes only see paths earlier ones rejected."""
        route = Route(pattern=pattern, handler=handler, match_type=match_type, name=name)
        self._routes.append(route)
        return route

    def exact(self, pattern: str, handler: Handler, name: Optional[str] = None) -> Route:
        return self.add_route(pattern, handler, MatchType.EXACT, name)

    def prefix(self, pattern: str, handler: Handler, name: Optional[str] = None) -> Route:
        return self.add_route(pattern, handler, MatchType.PREFIX, name)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def match(self, path: str) -> Optional[Route]:
        """First route matching ``path``, or None."""
        for route in self._routes:
            if route.matches(path):
                return route
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch ``request`` to its route's handler.

        Unmatched paths get 404 Not Found with an empty body.
        """
        route = self.match(request.path)
        if route is None:
            logger.debug(f"No route for {request.method} {request.path}")
            return not_found()

        logger.debug(f"{request.method} {request.path} -> {route.label}")
        return route.handler(request)
