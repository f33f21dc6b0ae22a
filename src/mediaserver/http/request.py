"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into immutable HTTPRequest objects.
Implements the parts of RFC 7230 this server needs: request line, header
fields and a Content-Length framed body (read for keep-alive framing only,
never interpreted).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    GET /stream?path=%2Fmedia%2Fclip.mp4 HTTP/1.1\r\n                │
    │    ─┬─ ───┬─── ────────────┬──────────  ────┬────                   │
    │     │     │                │                │                        │
    │   Method  Path        Raw query          Version                     │
    │                                                                      │
    │    Host: localhost:8080\r\n              ← Headers (case-insensitive)│
    │    Range: bytes=0-\r\n                                               │
    │    \r\n                                  ← Header/body separator     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The raw query string is kept verbatim, never split into parameters: the
stream endpoint matches on its literal "path=" prefix and decodes the
value itself.

=============================================================================
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict
from urllib.parse import urlsplit, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the server answers with before routing:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code  # HTTP status to return


@dataclass(frozen=True)
class HTTPRequest:
    """
    Read-only view of one parsed HTTP request.

    =========================================================================
    REQUEST LIFECYCLE
    =========================================================================

        Raw bytes              HTTPRequest              Router            Handler
        from socket  ──parse──► (frozen)   ──match──►  with_route()  ──► handle()
                                                        (new copy with
                                                         route_prefix)

    The instance is never mutated after parsing. The router derives a copy
    carrying the matched prefix so handlers can strip it.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, ... (upper case)
        path:           Percent-decoded path without the query string
        query_string:   Raw query string, None when the URI has no "?"
        headers:        Header dict with LOWERCASE keys
        route_prefix:   Prefix of the route that matched ("" before routing)
    =========================================================================
    """

    # Core request line components
    method: str
    path: str
    version: str = "HTTP/1.1"

    # Parsed components
    query_string: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = field(default=b"", repr=False)

    # Metadata
    client_address: tuple[str, int] = ("", 0)
    route_prefix: str = ""

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

            HTTP/1.1: keep alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def with_route(self, prefix: str) -> "HTTPRequest":
        """Return a copy of this request bound to the matched route prefix."""
        return replace(self, route_prefix=prefix)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├── 1. Size check               → 413 if too large
            ├── 2. Split at \\r\\n\\r\\n       → 400 if incomplete
            ├── 3. Request line              → 400 / 405 / 505
            ├── 4. Header fields             (lowercase names)
            └── 5. Body by Content-Length    → 400 if short
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Maximum allowed request size in bytes.
                              Larger requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Client (ip, port) for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            query_string=query_string,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Optional[str], str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, decoded path, raw query or None, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        # "/stream?path=a%20b" → path "/stream", raw query "path=a%20b"
        # "/video"             → path "/video",  raw query None
        # "//x/style.css"      → path "//x/style.css" (no authority)
        if uri.startswith("/"):
            raw_path, separator, query = uri.partition("?")
        else:
            # absolute-form: "http://host/video?x"
            parsed = urlsplit(uri)
            raw_path, separator, query = parsed.path, "?" if "?" in uri else "", parsed.query

        path = unquote(raw_path) or "/"
        query_string = query if separator else None

        return method, path, query_string, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", ". Obsolete line folding
        (continuation lines starting with whitespace) is supported.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
