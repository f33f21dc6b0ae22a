"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and one selector that watches it together with
every client connection that is waiting for its next request. A client
is handed to the callback (the HTTP server, which queues it on the thread
pool) only once it has something to read, so idle and silent clients
never tie up a worker.

=============================================================================
EVENT LOOP
=============================================================================

    bind()                   serve(handler)                  shutdown()
    ──────                   ──────────────                  ──────────
    socket()                 while running:                  running = False
    setsockopt(...)              select(0.5s)                wake the loop
    bind((host, port))           listener readable → accept, watch
    listen(backlog)              client readable   → unwatch, handler(conn)
    selector.register()          wakeup readable   → drain
                                 register parked connections
                                 drop connections past their idle deadline

    Connection flow:

        accept ──► watched ──readable──► handler ──► worker serves request
                      ▲                                       │
                      └────────────── park(conn) ◄────────────┘
                                       (keep-alive)

park() is called from worker threads. Only the loop thread touches the
selector: parked connections are queued under a lock and registered on
the next iteration, and a self-pipe (socketpair) wakes select() at once.

bind() and serve() are separate so the caller learns the real bound
address (port 0 → ephemeral port) before the loop starts, and can run
the loop on a thread of its own.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR  restart immediately without "Address already in use"
TCP_NODELAY   disable Nagle's algorithm; response heads go out at once

=============================================================================
"""

import selectors
import socket
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        host, port = server.bind()
        threading.Thread(target=server.serve, args=(handle_connection,)).start()
        ...
        server.park(conn)     # from a worker, after a keep-alive response
        ...
        server.shutdown()
    """

    # select() timeout; bounds how long shutdown() and idle deadlines
    # take to be noticed
    POLL_INTERVAL = 0.5

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration (host, port, backlog, timeouts).

        The socket is not created until bind().
        """
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None
        self._wakeup_reader: Optional[socket.socket] = None
        self._wakeup_writer: Optional[socket.socket] = None

        self._running = False
        self._parked: list[Connection] = []
        self._parked_lock = threading.Lock()

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Tuple[str, int]:
        """Actual bound (host, port); the configured one before bind()."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setblocking(False)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen; set up the selector.

        Returns:
            The actual bound (host, port).

        Raises:
            OSError: Address in use, permission denied, ...
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        self._wakeup_reader, self._wakeup_writer = socket.socketpair()
        self._wakeup_reader.setblocking(False)
        self._wakeup_writer.setblocking(False)

        self._selector = selectors.DefaultSelector()
        self._selector.register(sock, selectors.EVENT_READ)
        self._selector.register(self._wakeup_reader, selectors.EVENT_READ)
        self._running = True

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        return host, port

    # =========================================================================
    # EVENT LOOP
    # =========================================================================

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Run the event loop until shutdown(). Blocks.

        Args:
            connection_handler: Called with each Connection that has data
                                (or EOF) to read.

        Raises:
            RuntimeError: If bind() was not called first.
        """
        if self._socket is None:
            raise RuntimeError("SocketServer.serve() called before bind()")

        try:
            self._event_loop(connection_handler)
        finally:
            self._cleanup()

    def _event_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                events = self._selector.select(timeout=self.POLL_INTERVAL)
            except OSError as e:
                if self._running:
                    logger.error(f"Select error: {e}")
                break

            for key, _ in events:
                if key.fileobj is self._socket:
                    self._accept_clients()
                elif key.fileobj is self._wakeup_reader:
                    self._drain_wakeup()
                else:
                    self._release(key.data, connection_handler)

            self._register_parked()
            self._sweep_idle(time.monotonic())

    def _accept_clients(self):
        while True:
            try:
                client_socket, client_address = self._socket.accept()
            except BlockingIOError:
                return
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                return

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            self._watch(conn)

    def _watch(self, conn: Connection):
        try:
            self._selector.register(conn.socket, selectors.EVENT_READ, data=conn)
        except (ValueError, KeyError, OSError) as e:
            logger.warning(f"[{conn.id}] Could not watch connection: {e}")
            conn.close(drain=False)

    def _release(self, conn: Connection, connection_handler: Callable[[Connection], None]):
        """Stop watching a readable connection and hand it over."""
        self._selector.unregister(conn.socket)
        try:
            connection_handler(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Could not dispatch connection: {e}")
            conn.close(drain=False)

    def _sweep_idle(self, now: float):
        for key in list(self._selector.get_map().values()):
            conn = key.data
            if isinstance(conn, Connection) and conn.is_idle_expired(now):
                logger.debug(f"[{conn.id}] Idle timeout after {conn.requests_handled} requests")
                self._selector.unregister(conn.socket)
                conn.close(drain=False)

    # =========================================================================
    # KEEP-ALIVE HAND-BACK
    # =========================================================================

    def park(self, conn: Connection) -> bool:
        """
        Watch an idle connection again until its next request arrives.

        Callable from any thread.

        Returns:
            False if the server is shutting down; the caller keeps the
            connection and must close it.
        """
        with self._parked_lock:
            if not self._running:
                return False
            self._parked.append(conn)
        self._wake()
        return True

    def _register_parked(self):
        with self._parked_lock:
            parked, self._parked = self._parked, []
        for conn in parked:
            self._watch(conn)

    def _wake(self):
        writer = self._wakeup_writer
        if writer is None:
            return
        try:
            writer.send(b"\0")
        except OSError:
            pass  # a wakeup is already pending, or the loop is gone

    def _drain_wakeup(self):
        try:
            while self._wakeup_reader.recv(1024):
                pass
        except OSError:
            pass  # BlockingIOError once empty

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """Stop the event loop. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        with self._parked_lock:
            self._running = False
        self._wake()

    def _cleanup(self):
        with self._parked_lock:
            self._running = False
            parked, self._parked = self._parked, []

        if self._selector is not None:
            for key in list(self._selector.get_map().values()):
                if isinstance(key.data, Connection):
                    key.data.close(drain=False)
            self._selector.close()
            self._selector = None

        for conn in parked:
            conn.close(drain=False)

        for sock in (self._wakeup_reader, self._wakeup_writer, self._socket):
            if sock is not None:
                try:
                    sock.close()
                except OSError:
                    pass
        self._wakeup_reader = None
        self._wakeup_writer = None
        self._socket = None

        logger.info("Socket server stopped")

    def close(self):
        """Release a bound socket whose event loop never ran."""
        self._cleanup()
