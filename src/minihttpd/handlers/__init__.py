"""
=============================================================================
ROUTE HANDLERS
=============================================================================

The four behaviors the server routes to. Each is a callable taking an
HTTPRequest and returning an HTTPResponse:

    echo          /echo/<message>   reflect <message>
    user_agent    /user-agent       reflect the User-Agent header
    FileHandler   /files/<name>     read (GET) or write (POST) a file

The "/" route needs no handler module: it is a bare 200 OK.
=============================================================================
"""

from .echo import echo
from .user_agent import user_agent
from .files import FileHandler

__all__ = [
    "echo",
    "user_agent",
    "FileHandler",
]
