"""
=============================================================================
FILE STREAM HANDLER
=============================================================================

Streams a file from the local filesystem to the client in fixed-size
chunks, so files far larger than memory can be played by a <video>
element.

=============================================================================
REQUEST FORMAT
=============================================================================

    GET /stream?path=%2Fsrv%2Fmedia%2Ftrailer.mp4 HTTP/1.1
                ─────┬─────────────────────────────
                     └── raw query MUST start with "path="

    Everything after "path=" (including any later "&...") is the value.
    It is form-decoded once: "+" → space, "%XX" → byte, UTF-8.

    ┌────────────────────────────────────────┬────────────────────────────┐
    │ Situation                              │ Response                   │
    ├────────────────────────────────────────┼────────────────────────────┤
    │ method is not GET                      │ 405, empty body            │
    │ no query / query not "path=..."        │ 400 text                   │
    │ malformed %-escape                     │ 500 text                   │
    │ decoded path does not exist            │ 404 "File not found: ..."  │
    │ stat/open fails (directory, perms)     │ 500 text                   │
    │ otherwise                              │ 200 video/mp4, full file   │
    └────────────────────────────────────────┴────────────────────────────┘

=============================================================================
SECURITY
=============================================================================

The decoded value is used as a filesystem path without any sandboxing:
any file the server process can read is reachable. Deploy only where
that is acceptable.

=============================================================================
STREAMING
=============================================================================

    Handler (before commit)            Writer (after commit)
    ───────────────────────            ─────────────────────
    stat size ──► Content-Length       with source, writer:
    open file ──► FileStreamBody  ──►      read 8 KiB ─► write ─► repeat
                                           until Content-Length bytes

The file is opened before the head is sent, so every failure that can be
reported with a status code is. Once the head is out, an I/O failure can
only abort the connection; the with block still closes the file.

The copy never goes past the size taken at stat time, even if the file
grows meanwhile. A file that shrinks leaves the body short; the server
then closes the connection instead of reusing it.

Range requests are not supported: "Accept-Ranges: bytes" is advertised
but every request receives the full file with status 200.

=============================================================================
"""

from typing import BinaryIO, Optional
from urllib.parse import unquote_plus
import logging
import re

from ..http.errors import BadRequest, InternalError, NotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, ResponseWriter, StreamingBody
from ..http.status_codes import HTTPStatus
from ..resources import FileLocator
from .base import RequestHandler


logger = logging.getLogger(__name__)


PATH_PARAMETER = "path="
STREAM_CONTENT_TYPE = "video/mp4"
DEFAULT_CHUNK_SIZE = 8192

# "%" not followed by two hex digits
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_path_parameter(value: str) -> str:
    """
    Form-decode a query value.

        "%2Fmedia%2Fmy+clip.mp4"  →  "/media/my clip.mp4"

    Byte sequences that are not valid UTF-8 decode to U+FFFD.

    Raises:
        ValueError: On a truncated or non-hex %-escape ("%", "%4", "%zz").
    """
    match = _MALFORMED_ESCAPE.search(value)
    if match:
        raise ValueError(
            f"Illegal hex characters in escape (%) pattern at index {match.start()}"
        )
    return unquote_plus(value, encoding="utf-8", errors="replace")


class FileStreamBody(StreamingBody):
    """
    Streaming body backed by an open binary file.

    The file is owned by the body from construction: write_to() closes it
    when the copy ends (successfully or not) and close() closes it if the
    body is discarded unwritten.
    """

    def __init__(self, source: BinaryIO, length: int, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.source = source
        self._length = length
        self.chunk_size = chunk_size

    @property
    def length(self) -> int:
        return self._length

    def write_to(self, writer: ResponseWriter) -> None:
        """
        Copy exactly `length` bytes, fewer only if the file shrank.

        Bytes appended after the size was taken are not sent: they are
        not covered by Content-Length.
        """
        remaining = self._length
        with self.source, writer:
            while remaining > 0:
                chunk = self.source.read(min(self.chunk_size, remaining))
                if not chunk:
                    logger.warning(
                        f"File ended {remaining} bytes short of its Content-Length"
                    )
                    break
                writer.write(chunk)
                remaining -= len(chunk)

    def close(self) -> None:
        self.source.close()

    def __repr__(self) -> str:
        return f"FileStreamBody(length={self._length}, chunk_size={self.chunk_size})"


class StreamHandler(RequestHandler):
    """
    Handler for GET /stream?path=<url-encoded filesystem path>.

    Usage:
        router.register("/stream", StreamHandler(chunk_size=8192))
    """

    allowed_methods = frozenset({"GET"})

    # Sent on every successful stream, in this order
    CORS_METHODS = ["GET", "OPTIONS"]
    CORS_HEADERS = ["Range"]

    def __init__(self, locator: Optional[FileLocator] = None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.locator = locator or FileLocator()
        self.chunk_size = chunk_size

    def requested_path(self, request: HTTPRequest) -> str:
        """
        Extract and decode the path parameter from the raw query string.

        Raises:
            BadRequest: Query missing or not starting with "path="
            InternalError: Malformed %-escape in the value
        """
        query = request.query_string
        if query is None or not query.startswith(PATH_PARAMETER):
            raise BadRequest("Missing required query parameter: path")

        try:
            return decode_path_parameter(query[len(PATH_PARAMETER):])
        except ValueError as e:
            raise InternalError(f"Error streaming file: {e}") from e

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        self.check_method(request)

        path = self.requested_path(request)

        if not self.locator.exists(path):
            raise NotFound(f"File not found: {path}")

        try:
            size = self.locator.size(path)
            source = self.locator.open(path)
        except OSError as e:
            logger.error(f"Cannot open {path} for streaming: {e}")
            raise InternalError(f"Error streaming file: {e}") from e

        logger.debug(f"Streaming {path} ({size} bytes)")

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(STREAM_CONTENT_TYPE)
            .header("Accept-Ranges", "bytes")
            .cors(origin="*", methods=self.CORS_METHODS, headers=self.CORS_HEADERS)
            .header("Content-Length", str(size))
            .stream(FileStreamBody(source, size, self.chunk_size))
            .build())
