"""
=============================================================================
FILE HANDLER
=============================================================================

Reads and writes files under a root directory.

    GET  /files/<name>   → 200 + file bytes (application/octet-stream)
    POST /files/<name>   → 201, request body written to <name> (overwrite)

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

The file path is built as root + "/" + <name>, then resolved (following
".." and symlinks). The resolved path must still be inside the resolved
root, otherwise the request gets 403 Forbidden and the filesystem is never
touched:

    root = /srv/data
    GET /files/../../etc/passwd  → /etc/passwd          → 403
    GET /files/a/../b.txt        → /srv/data/b.txt      → served

=============================================================================
ERRORS
=============================================================================

    400  empty name, method other than GET/POST, missing or invalid
         Content-Length, body shorter than Content-Length
    403  path resolves outside the root
    404  GET on a name that is not a regular file
    500  any other OS error while reading or writing

Concurrent writes to the same name are not coordinated: the last write wins.
=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder,
    bad_request, created, forbidden, internal_error, not_found,
)
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class FileHandler:
    """
    Serves GET and POST on /files/<name> from ``root_dir``.

    Usage:
        files = FileHandler("/tmp/data")
        router.prefix("/files/", files.handle)

    The root does not need to exist when the handler is created; reads
    then simply find nothing (404) and writes fail (500).
    """

    def __init__(self, root_dir: str = ".", url_prefix: str = "/files/"):
        """
        Args:
            root_dir: Directory files are read from and written to. An
                empty string means the filesystem root, since file paths
                are built as root_dir + "/" + name.
            url_prefix: Path prefix stripped to get the file name.
        """
        self.root_dir = root_dir
        self.url_prefix = url_prefix
        # Same string join as resolve(), so "" resolves to "/" and not the cwd
        self._resolved_root = Path(f"{root_dir}/").resolve()

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Dispatch on method after validating the file name."""
        _, separator, name = request.path.partition(self.url_prefix)
        if not separator or not name:
            return bad_request()

        if request.method not in ("GET", "POST"):
            return bad_request()

        path = self.resolve(name)
        if path is None:
            logger.warning(f"Path traversal attempt: {request.path}")
            return forbidden()

        if request.method == "GET":
            return self._read(path)
        return self._write(path, request)

    def resolve(self, name: str) -> Optional[Path]:
        """
        Absolute path for ``name``, or None if it escapes the root.

        The join is a plain string join on "/" so that a name starting with
        "/" stays below the root instead of replacing it.
        """
        full_path = Path(f"{self.root_dir}/{name}").resolve()
        try:
            full_path.relative_to(self._resolved_root)
        except ValueError:
            return None
        return full_path

    def _read(self, path: Path) -> HTTPResponse:
        if not path.is_file():
            return not_found()

        try:
            content = path.read_bytes()
        except FileNotFoundError:
            # Removed between the check and the read
            return not_found()
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            return internal_error()

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .octets(content)
            .build())

    def _write(self, path: Path, request: HTTPRequest) -> HTTPResponse:
        length = request.content_length
        if length is None:
            logger.debug(f"POST {request.path} without a valid Content-Length")
            return bad_request()

        if len(request.body) < length:
            logger.debug(
                f"POST {request.path}: body has {len(request.body)} of {length} bytes"
            )
            return bad_request()

        try:
            path.write_bytes(request.body[:length])
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            return internal_error()

        logger.debug(f"Wrote {length} bytes to {path}")
        return created()
