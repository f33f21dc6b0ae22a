"""
=============================================================================
CONNECTION HANDLING
=============================================================================

Wraps one accepted client socket: buffered request reading, idle
deadlines, raising sends and a graceful close.

=============================================================================
KEEP-ALIVE
=============================================================================

    TCP Connect
        │
        ├── GET /             → index.html
        ├── GET /static/x.css → style sheet
        ├── GET /video        → videos.json
        │
    TCP Close (client closes, "Connection: close", or idle timeout)

The first request may take up to `timeout` seconds to arrive; later
requests on the same connection get the shorter `keep_alive_timeout`.
While nothing has arrived the connection waits in the socket server's
selector, not in a worker; is_idle_expired() tells the selector when to
give up on it. Bytes the client pipelined past the end of one request
stay buffered for the next (has_pending_request).

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING ────────┐
     │             │                                    │           │
     │             │                                    │           ▼
     │             │                                    │      KEEP_ALIVE
     │             ▼                                    │           │
     └──────────► CLOSING ◄─────────────────────────────┴───────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class RequestTooLarge(ValueError):
    """The buffered request grew past max_request_size."""


class ConnectionState(Enum):
    NEW = "new"              # Just accepted, nothing read yet
    READING = "reading"      # Reading request bytes
    PROCESSING = "processing"  # Handler is executing
    WRITING = "writing"      # Sending response bytes
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for next request
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current connection state.
        requests_handled: Number of requests read on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192           # recv() size
    timeout: Optional[float] = 30.0   # Timeout for first request
    keep_alive_timeout: float = 5.0   # Timeout for subsequent requests
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def label(self) -> str:
        """Client "ip:port" for log lines."""
        return f"{self.client_ip}:{self.client_port}"

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @property
    def has_pending_request(self) -> bool:
        """True when the buffer already holds a complete request head."""
        return b"\r\n\r\n" in self._buffer

    @property
    def idle_timeout(self) -> Optional[float]:
        """How long the connection may sit silent before it is dropped."""
        if self.requests_handled > 0:
            return self.keep_alive_timeout
        return self.timeout

    def is_idle_expired(self, now: float) -> bool:
        timeout = self.idle_timeout
        return timeout is not None and now - self.last_activity > timeout

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

            1. recv() until the buffer holds "\\r\\n\\r\\n"
            2. read Content-Length more bytes for the body
            3. cut the request off the buffer, keep the rest

        Returns:
            Complete request bytes, or None if the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: First request did not arrive within timeout.
            RequestTooLarge: Buffered request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.monotonic()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None  # Closed by client
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports it
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.monotonic()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 or not self._buffer:
                # Idle keep-alive connection, or a client that never spoke
                logger.debug(f"[{self.id}] Idle timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self.is_closed:
                self.socket.settimeout(self.timeout)

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.monotonic()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """Content-Length from raw header bytes, 0 if absent or invalid."""
        try:
            header_str = headers.decode("utf-8", errors="replace").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(0, int(line.split(":", 1)[1].strip()))
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_all(self, data: bytes) -> None:
        """
        Send every byte or raise.

        Raises:
            ConnectionError: Client went away (reset, broken pipe).
            OSError: Any other socket failure, including send timeouts.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)
        self.last_activity = time.monotonic()

    def send_response(self, data: bytes) -> bool:
        """Best-effort send for error replies; False if the client is gone."""
        try:
            self.send_all(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, drain: bool = True):
        """
        Close the connection gracefully.

            shutdown(SHUT_WR)  → FIN to the client
            drain              → discard unread request bytes (up to 0.5s)
            close()            → release the descriptor

        The selector thread passes drain=False: it must never block.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        if drain:
            try:
                self.socket.settimeout(0.5)
                while self.socket.recv(1024):
                    pass
            except OSError:
                pass  # socket.timeout is an OSError

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        """Mark connection as waiting for the next request; restarts the idle clock."""
        self.state = ConnectionState.KEEP_ALIVE
        self.last_activity = time.monotonic()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
