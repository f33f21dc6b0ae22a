"""
Unit tests for the client connection wrapper and the socket server's
keep-alive hand-back.
"""

import socket
import threading

import pytest

from mediaserver.config import ServerConfig
from mediaserver.core import Connection, ConnectionState, SocketServer


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    server_side.close()
    client_side.close()


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    return Connection(socket=sock, address=("127.0.0.1", 50000), **kwargs)


class TestConnection:
    """Tests for Connection class."""

    def test_pipelined_request_stays_buffered(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=2.0)
        client_side.sendall(
            b"GET /video HTTP/1.1\r\n\r\n"
            b"GET /style.css HTTP/1.1\r\n\r\n"
        )

        assert conn.read_request() == b"GET /video HTTP/1.1\r\n\r\n"
        assert conn.has_pending_request
        assert conn.read_request() == b"GET /style.css HTTP/1.1\r\n\r\n"
        assert not conn.has_pending_request

    def test_partial_request_is_not_pending(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=2.0)
        client_side.sendall(b"GET /video HTTP/1.1\r\n\r\nGET /sty")

        conn.read_request()

        assert not conn.has_pending_request

    def test_idle_timeout_switches_after_first_request(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=30.0, keep_alive_timeout=5.0)
        assert conn.idle_timeout == 30.0

        client_side.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn.read_request()

        assert conn.idle_timeout == 5.0

    def test_idle_expiry(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=2.0)
        start = conn.last_activity

        assert not conn.is_idle_expired(start + 1.0)
        assert conn.is_idle_expired(start + 2.5)

    def test_no_timeout_never_expires(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=None)
        assert not conn.is_idle_expired(conn.last_activity + 3600)

    def test_set_keep_alive_restarts_idle_clock(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=2.0)
        conn.last_activity -= 10

        conn.set_keep_alive()

        assert conn.state is ConnectionState.KEEP_ALIVE
        assert not conn.is_idle_expired(conn.last_activity + 1.0)

    def test_close_without_drain(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=2.0)

        conn.close(drain=False)

        assert conn.is_closed
        client_side.settimeout(2.0)
        assert client_side.recv(1) == b""


class TestSocketServerPark:
    """Tests for handing idle connections back to the event loop."""

    @pytest.fixture
    def server(self):
        server = SocketServer(ServerConfig(host="127.0.0.1", port=0, timeout=5.0))
        server.bind()
        yield server
        server.shutdown()
        server.close()

    def test_parked_connection_is_released_when_readable(self, server: SocketServer, socket_pair):
        server_side, client_side = socket_pair
        released = []
        ready = threading.Event()

        def handler(conn):
            released.append(conn)
            ready.set()

        loop = threading.Thread(target=server.serve, args=(handler,), daemon=True)
        loop.start()

        conn = make_connection(server_side, timeout=5.0)
        assert server.park(conn)
        assert not ready.wait(0.3)

        client_side.sendall(b"GET / HTTP/1.1\r\n\r\n")

        assert ready.wait(2.0)
        assert released == [conn]

        server.shutdown()
        loop.join(2.0)
        assert not loop.is_alive()

    def test_park_after_shutdown_is_refused(self, server: SocketServer, socket_pair):
        server_side, _ = socket_pair
        server.shutdown()

        assert not server.park(make_connection(server_side))

    def test_shutdown_closes_watched_connections(self, server: SocketServer, socket_pair):
        server_side, client_side = socket_pair
        loop = threading.Thread(target=server.serve, args=(lambda conn: None,), daemon=True)
        loop.start()

        conn = make_connection(server_side, timeout=5.0)
        server.park(conn)
        server.shutdown()
        loop.join(2.0)

        assert conn.is_closed
        client_side.settimeout(2.0)
        assert client_side.recv(1) == b""
