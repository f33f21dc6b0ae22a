"""
=============================================================================
MEDIA HTTP SERVER
=============================================================================

The orchestrator that ties the networking core, the HTTP layer and the
router together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP SERVER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    │ event loop   │    │  N workers   │    │ frozen table │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────┬───────┘        │
    │           ▼                   ▼                   ▼                 │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │  Connection  │───►│ one exchange │───►│   Handlers   │        │
    │    │  (readable)  │    │ per task     │    │              │        │
    │    └──────────────┘    └──────────────┘    └──────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (worker thread)
=============================================================================

    1. READ        Connection.read_request()       408 / 413 on failure
    2. PARSE       RequestParser.parse()           400 / 405 / 505 on failure
    3. DISPATCH    Router.handle()                 never raises
    4. HEADERS     Connection: keep-alive | close
    5. WRITE       ResponseWriter.send()           head, then body
    6. LOG         one access log line
    7. NEXT        pipelined request buffered → back to 1
                   keep-alive → park the connection in the socket server
                   otherwise  → close

A worker holds a connection only while it has a request to serve. Between
requests the connection waits in the socket server's selector, so idle
keep-alive clients and clients that never send anything cost no worker.

A failure before the head is sent becomes an error response. A failure
after the head is sent (client disconnect, disk error mid-stream) cannot
change the status any more: it is logged and the connection is closed.
So is a streamed body that came out shorter than its Content-Length.

=============================================================================
LIFECYCLE
=============================================================================

    server = HTTPServer(config)
    server.route("/video", MetadataHandler(bundle))
    server.start()        # non-blocking: freeze routes, bind, spawn threads
    server.address        # ("0.0.0.0", 8080)
    server.stop()         # idempotent

    server.run()          # start() + wait for Ctrl+C / SIGTERM + stop()

=============================================================================
"""

import logging
import signal
import threading
import time
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, ConnectionState, RequestTooLarge, SocketServer, ThreadPool
from .exceptions import ServerStateError
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    ResponseBuilder,
    ResponseWriter,
    Router,
)
from .http.router import Handler


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("mediaserver.access")


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger for console output."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )

    logging.getLogger("mediaserver").setLevel(numeric_level)


class HTTPServer:
    """
    Thread-pooled HTTP/1.1 server with prefix routing.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=8080))

        server.route("/video", MetadataHandler(bundle))

        @server.route("/ping")
        def ping(request):
            return ResponseBuilder().text("pong").build()

        server.run()      # blocks until Ctrl+C

    Routes must be registered before start(); the route table is frozen
    when the server starts.

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration. Defaults are used if omitted.
            router: Pre-populated router. A new empty one if omitted.

        Raises:
            ValueError: Invalid configuration.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # fail fast

        self._router = router or Router()
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        # Created by start(), released by stop()
        self._socket_server: Optional[SocketServer] = None
        self._thread_pool: Optional[ThreadPool] = None
        self._loop_thread: Optional[threading.Thread] = None

        self._lock = threading.Lock()
        self._started = False
        self._stop_requested = threading.Event()

    # =========================================================================
    # ROUTES
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    def route(self, prefix: str, handler: Optional[Handler] = None):
        """
        Register a handler for a path prefix.

        Called with a handler it registers directly; called without one it
        returns a decorator.

        Raises:
            ValueError: Blank prefix, missing handler or duplicate prefix.
            RouterStateError: The server has already started.
        """
        if handler is None:
            return self._router.route(prefix)
        return self._router.register(prefix, handler)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) while started; the configured pair otherwise."""
        if self._socket_server is not None and self._socket_server.is_bound:
            return self._socket_server.address
        return (self.config.host, self.config.port)

    def start(self) -> Tuple[str, int]:
        """
        Start serving in background threads and return immediately.

        Returns:
            The bound (host, port).

        Raises:
            ServerStateError: The server is already started.
            OSError: The address could not be bound.
        """
        with self._lock:
            if self._started:
                raise ServerStateError("Server is already started")

            table = self._router.freeze()
            if not len(table):
                logger.warning("No routes registered; every request will get 404")

            socket_server = SocketServer(self.config)
            host, port = socket_server.bind()

            thread_pool = ThreadPool(workers=self.config.workers)
            try:
                thread_pool.start()
            except Exception:
                socket_server.close()
                raise

            self._socket_server = socket_server
            self._thread_pool = thread_pool
            self._stop_requested.clear()
            self._started = True

            self._loop_thread = threading.Thread(
                target=socket_server.serve,
                args=(self._handle_connection,),
                name="mediaserver-event-loop",
                daemon=True,
            )
            self._loop_thread.start()

        logger.info(
            f"{self.config.server_name} started on http://{host}:{port} "
            f"with {self.config.workers} workers"
        )
        for route in table:
            logger.info(f"  {route.prefix:<10} -> {route.handler_name}")

        return host, port

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop accepting connections and drain the worker pool.

        Safe to call more than once and from any thread.

        Args:
            timeout: Seconds to wait for the event loop thread and for
                     queued connections before giving up on them.
        """
        with self._lock:
            if not self._started:
                logger.info("Server is already stopped")
                return
            self._started = False

        logger.info("Shutting down server...")
        self._stop_requested.set()

        if self._socket_server is not None:
            self._socket_server.shutdown()
        if self._loop_thread is not None:
            self._loop_thread.join(timeout)
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, timeout=timeout)

        self._socket_server = None
        self._thread_pool = None
        self._loop_thread = None

        logger.info("Server stopped")

    def run(self) -> None:
        """
        Start the server and block until interrupted.

        SIGINT and SIGTERM trigger a graceful stop. Signal handlers can only
        be installed from the main thread; elsewhere run() just blocks until
        stop() is called.
        """
        setup_logging(self.config.log_level)
        self.start()

        previous_handlers = {}
        if threading.current_thread() is threading.main_thread():
            for sig in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[sig] = signal.signal(sig, self._on_signal)

        try:
            while not self._stop_requested.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)
            self.stop()

    def _on_signal(self, signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
        self._stop_requested.set()

    def __enter__(self) -> "HTTPServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection that has a request waiting (event loop thread)."""
        pool = self._thread_pool
        if pool is None or not pool.is_running:
            raise RuntimeError("Thread pool is not running")
        pool.submit(self._process_connection, args=(conn,))

    def _process_connection(self, conn: Connection):
        """
        Serve the requests a connection has ready (worker thread).

        Serves one request, then any the client pipelined behind it. An
        idle keep-alive connection is parked in the socket server, which
        queues it again when the next request arrives; anything else is
        closed.
        """
        parked = False
        try:
            while self._serve_request(conn):
                if conn.has_pending_request:
                    continue
                conn.set_keep_alive()
                parked = self._park(conn)
                break
        finally:
            if not parked:
                conn.close()

    def _park(self, conn: Connection) -> bool:
        socket_server = self._socket_server
        if not self._started or socket_server is None:
            return False
        return socket_server.park(conn)

    def _serve_request(self, conn: Connection) -> bool:
        """
        Read, dispatch and answer one request.

        Returns:
            True if the connection may carry another request.
        """
        if not self._started:
            return False

        # ─────────────────────────────────────────────────────────────────
        # READ
        # ─────────────────────────────────────────────────────────────────
        try:
            raw_request = conn.read_request()
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
            return False
        except RequestTooLarge as e:
            self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
            return False
        except OSError as e:
            logger.warning(f"[{conn.id}] Read failed: {e}")
            return False

        if raw_request is None:
            return False

        started_at = time.perf_counter()

        # ─────────────────────────────────────────────────────────────────
        # PARSE
        # ─────────────────────────────────────────────────────────────────
        try:
            request = self._parser.parse(raw_request, conn.address)
        except HTTPParseError as e:
            logger.info(f"[{conn.id}] Bad request from {conn.label}: {e}")
            self._send_error(conn, HTTPStatus(e.status_code), str(e))
            return False

        # ─────────────────────────────────────────────────────────────────
        # DISPATCH
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.PROCESSING
        response = self._router.handle(request)
        keep_alive = self._apply_connection_headers(request, response)

        # ─────────────────────────────────────────────────────────────────
        # WRITE
        # ─────────────────────────────────────────────────────────────────
        head_only = request.method == "HEAD"
        writer = ResponseWriter(conn.send_all, self.config.server_name)
        try:
            if head_only:
                writer.write_head(response)
                writer.close()
            else:
                writer.send(response)
        except OSError as e:
            self._log_access(conn, request, response, writer, started_at)
            if writer.committed:
                logger.warning(f"[{conn.id}] Response aborted after headers: {e}")
            else:
                logger.warning(f"[{conn.id}] Send failed: {e}")
            return False
        except Exception as e:
            logger.exception(f"[{conn.id}] Response failed: {e}")
            return False
        finally:
            response.close()

        self._log_access(conn, request, response, writer, started_at)

        if (not head_only and response.is_streaming
                and writer.bytes_written != response.content_length):
            # The client is still waiting for the missing bytes
            logger.warning(
                f"[{conn.id}] Body ended after {writer.bytes_written} of "
                f"{response.content_length} bytes; closing connection"
            )
            return False

        return keep_alive

    def _apply_connection_headers(self, request: HTTPRequest, response: HTTPResponse) -> bool:
        """Set the Connection header; return whether to keep the connection."""
        keep_alive = (
            self.config.keep_alive
            and request.is_keep_alive
            and (response.get_header("Connection") or "").lower() != "close"
        )

        if keep_alive:
            response.headers["Connection"] = "keep-alive"
            response.headers.setdefault(
                "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
            )
        else:
            response.headers["Connection"] = "close"
        return keep_alive

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """
        Answer a request that never reached the router, then close.

        Used for read timeouts, oversized requests and parse errors.
        """
        response = (ResponseBuilder()
            .status(status)
            .text(message)
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))

    def _log_access(
        self,
        conn: Connection,
        request: HTTPRequest,
        response: HTTPResponse,
        writer: ResponseWriter,
        started_at: float
    ):
        elapsed_ms = (time.perf_counter() - started_at) * 1000
        access_logger.info(
            f'{conn.label} "{request.method} {request.path}" '
            f"{int(response.status)} {writer.bytes_written} {elapsed_ms:.1f}ms"
        )

