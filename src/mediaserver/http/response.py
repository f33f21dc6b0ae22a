"""
=============================================================================
HTTP RESPONSE MODEL AND WRITER
=============================================================================

Builds HTTP/1.1 responses and serializes them onto a connection.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                      ← Status line           │
    │    Content-Type: video/mp4\r\n              ← Handler headers       │
    │    Accept-Ranges: bytes\r\n                                         │
    │    Content-Length: 7340032\r\n              ← Exact body size       │
    │    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n  ← Added on write        │
    │    Server: MediaServer/1.0\r\n              ← Added on write        │
    │    Connection: keep-alive\r\n               ← Added by the server   │
    │    \r\n                                                              │
    │    <body bytes>                             ← bytes or a stream     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BODIES
=============================================================================

A body is either plain bytes (assets, JSON, error text) or a
StreamingBody: a lazy source whose length is known up front and whose
bytes are produced only when the writer asks for them. Large media files
are never held in memory.

=============================================================================
WRITE-ONCE WRITER
=============================================================================

    ResponseWriter state machine:

        PENDING ──write_head()──► HEADERS_COMMITTED ──write()──► BODY_STREAMING
           │                            │                             │
           └──────────── close() ───────┴────────── close() ──────────┴──► CLOSED

    - write_head() is allowed exactly once, from PENDING
    - write() is allowed only after the head and before close()
    - anything else raises ResponseCommittedError

Once the head is on the wire the status can no longer change; a failure
after that point can only abort the connection.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
import json

from ..exceptions import ResponseCommittedError
from .status_codes import HTTPStatus


TEXT_CONTENT_TYPE = "text/plain; charset=UTF-8"
JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


class StreamingBody(ABC):
    """
    A response body produced lazily while it is written.

    Subclasses report their exact length before anything is sent (it goes
    into Content-Length) and push their bytes through the writer in
    write_to(). close() releases whatever the body holds when it is
    discarded without being written.
    """

    @property
    @abstractmethod
    def length(self) -> int:
        """Exact number of bytes write_to() will produce."""

    @abstractmethod
    def write_to(self, writer: "ResponseWriter") -> None:
        """Write the whole body, then close the writer."""

    def close(self) -> None:
        pass


Body = Union[bytes, StreamingBody]


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder to construct one; use ResponseWriter to send it.
    """

    status: HTTPStatus = HTTPStatus.OK       # HTTP status code (enum)
    headers: Dict[str, str] = field(default_factory=dict)  # Insertion ordered
    body: Body = b""                         # bytes or StreamingBody
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def is_streaming(self) -> bool:
        return isinstance(self.body, StreamingBody)

    @property
    def content_length(self) -> int:
        if isinstance(self.body, StreamingBody):
            return self.body.length
        return len(self.body)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive lookup among the headers set so far."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def head_bytes(self, server_name: str = "MediaServer/1.0") -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        Content-Length, Date and Server are added when the handler did not
        set them. Handler headers keep their order and come first.

        Args:
            server_name: Value for the Server header.

        Returns:
            Head bytes ready for socket.sendall()
        """
        response_headers = dict(self.headers)  # never mutate the original
        present = {name.lower() for name in response_headers}

        if "content-length" not in present:
            response_headers["Content-Length"] = str(self.content_length)

        if "date" not in present:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "server" not in present:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    def to_bytes(self, server_name: str = "MediaServer/1.0") -> bytes:
        """
        Serialize the whole response in one piece.

        Raises:
            TypeError: If the body is a StreamingBody.
        """
        if isinstance(self.body, StreamingBody):
            raise TypeError("streaming responses must be sent with a ResponseWriter")
        return self.head_bytes(server_name) + self.body

    def close(self) -> None:
        """Release a streaming body that was never (fully) written."""
        if isinstance(self.body, StreamingBody):
            self.body.close()


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("application/json; charset=UTF-8")
            .cors()
            .body(raw_bytes)
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: Body = b""

    # =========================================================================
    # STATUS & HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def cors(
        self,
        origin: str = "*",
        methods: Optional[list[str]] = None,
        headers: Optional[list[str]] = None
    ) -> "ResponseBuilder":
        """
        Add CORS (Cross-Origin Resource Sharing) headers.

        Browsers only let a page read a cross-origin response when the
        server says so:

            Access-Control-Allow-Origin: *
            Access-Control-Allow-Methods: GET, OPTIONS
            Access-Control-Allow-Headers: Range

        Args:
            origin: Allowed origin ("*" for any)
            methods: Allowed methods, omitted when None
            headers: Allowed request headers, omitted when None
        """
        self._headers["Access-Control-Allow-Origin"] = origin

        if methods:
            self._headers["Access-Control-Allow-Methods"] = ", ".join(methods)

        if headers:
            self._headers["Access-Control-Allow-Headers"] = ", ".join(headers)
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client this connection closes after the response."""
        self._headers["Connection"] = "close"
        return self

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a raw body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = bytes(body)
        return self

    def text(self, text: str, content_type: str = TEXT_CONTENT_TYPE) -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Serialize data as the JSON body.

        ensure_ascii=False keeps non-ASCII file names readable in error
        envelopes.
        """
        self._body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def stream(self, body: StreamingBody, content_type: Optional[str] = None) -> "ResponseBuilder":
        """Use a lazily written body; its length becomes Content-Length."""
        self._body = body
        if content_type:
            self._headers["Content-Type"] = content_type
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


class WriterState(Enum):
    PENDING = "pending"
    HEADERS_COMMITTED = "headers_committed"
    BODY_STREAMING = "body_streaming"
    CLOSED = "closed"


class ResponseWriter:
    """
    Write-once serializer for one response on one connection.

    The writer does not own the socket: it pushes bytes through a send
    callable (usually Connection.send_all) and records how far the
    response got. Closing the writer marks the response finished; the
    connection stays open for keep-alive.

    Usage:
        writer = ResponseWriter(connection.send_all, "MediaServer/1.0")
        writer.send(response)

        # or by hand
        with writer:
            writer.write_head(response)
            writer.write(b"...")
    """

    def __init__(self, send: Callable[[bytes], Any], server_name: str = "MediaServer/1.0"):
        """
        Args:
            send: Callable that sends all given bytes or raises.
            server_name: Value for the Server header.
        """
        self._send = send
        self._server_name = server_name
        self.state = WriterState.PENDING
        self.bytes_written = 0      # Body bytes only, for the access log

    @property
    def committed(self) -> bool:
        """True once the head has been sent."""
        return self.state is not WriterState.PENDING

    def write_head(self, response: HTTPResponse) -> None:
        if self.state is not WriterState.PENDING:
            raise ResponseCommittedError("response head already written")
        self._send(response.head_bytes(self._server_name))
        self.state = WriterState.HEADERS_COMMITTED

    def write(self, data: bytes) -> None:
        if self.state is WriterState.PENDING:
            raise ResponseCommittedError("body written before response head")
        if self.state is WriterState.CLOSED:
            raise ResponseCommittedError("response writer is closed")
        if not data:
            return
        self.state = WriterState.BODY_STREAMING
        self._send(data)
        self.bytes_written += len(data)

    def close(self) -> None:
        self.state = WriterState.CLOSED

    def send(self, response: HTTPResponse) -> None:
        """Write the head and the full body of a response, then close."""
        self.write_head(response)
        if isinstance(response.body, StreamingBody):
            response.body.write_to(self)
        else:
            with self:
                self.write(response.body)

    def __enter__(self) -> "ResponseWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False  # never suppress


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT; strftime is avoided because day and month
    names are locale dependent.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
