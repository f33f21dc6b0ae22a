"""
Unit tests for the prefix router.
"""

import threading

import pytest

from mediaserver.exceptions import RouterStateError
from mediaserver.http.errors import BadRequest, BodyFormat, MethodNotAllowed, NotFound
from mediaserver.http.request import HTTPRequest
from mediaserver.http.response import HTTPResponse, ResponseBuilder
from mediaserver.http.router import Route, Router, RouteTable
from mediaserver.http.status_codes import HTTPStatus


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Echo the prefix the request was routed with."""
    return ResponseBuilder().text(request.route_prefix).build()


class TestRegister:
    """Tests for Router.register()."""

    def test_register_route(self):
        router = Router()
        route = router.register("/video", dummy_handler)

        assert route == Route(prefix="/video", handler=dummy_handler)
        assert router.routes == [route]

    def test_prefix_normalized(self):
        """A leading slash is added when missing."""
        router = Router()
        route = router.register("stream", dummy_handler)
        assert route.prefix == "/stream"

    @pytest.mark.parametrize("prefix", ["", "   ", None])
    def test_blank_prefix_rejected(self, prefix):
        with pytest.raises(ValueError):
            Router().register(prefix, dummy_handler)

    def test_missing_handler_rejected(self):
        with pytest.raises(ValueError):
            Router().register("/video", None)

    def test_duplicate_prefix_rejected(self):
        router = Router()
        router.register("/video", dummy_handler)
        with pytest.raises(ValueError):
            router.register("video", dummy_handler)

    def test_register_after_freeze(self):
        router = Router()
        router.register("/video", dummy_handler)
        router.freeze()

        with pytest.raises(RouterStateError):
            router.register("/stream", dummy_handler)
        assert [route.prefix for route in router.routes] == ["/video"]

    def test_route_decorator(self):
        router = Router()

        @router.route("/ping")
        def ping(request):
            return ResponseBuilder().text("pong").build()

        assert router.routes[0].handler is ping
        assert router.routes[0].handler_name == "ping"

    def test_registration_is_logged(self, caplog):
        with caplog.at_level("INFO", logger="mediaserver.http.router"):
            Router().register("/video", dummy_handler)
        assert "Route registered: /video -> dummy_handler" in caplog.text


class TestDispatch:
    """Tests for longest-prefix matching."""

    def make_router(self) -> Router:
        router = Router()
        router.register("/", dummy_handler)
        router.register("/static/", dummy_handler)
        router.register("/video", dummy_handler)
        router.register("/stream", dummy_handler)
        return router

    @pytest.mark.parametrize("path, prefix", [
        ("/", "/"),
        ("/index.html", "/"),
        ("/static/style.css", "/static/"),
        ("/static", "/"),
        ("/video", "/video"),
        ("/videos", "/video"),
        ("/stream", "/stream"),
    ])
    def test_longest_prefix_wins(self, path, prefix):
        match = self.make_router().dispatch(path)
        assert match is not None
        assert match.route.prefix == prefix
        assert match.remainder == path[len(prefix):]

    def test_no_match(self):
        router = Router()
        router.register("/video", dummy_handler)
        assert router.dispatch("/stream") is None

    def test_dispatch_is_independent_of_registration_order(self):
        router = Router()
        router.register("/static/", dummy_handler)
        router.register("/", dummy_handler)
        assert router.dispatch("/static/a.css").route.prefix == "/static/"

    def test_frozen_table_is_immutable(self):
        router = self.make_router()
        table = router.freeze()

        assert isinstance(table, RouteTable)
        assert router.freeze() is table
        assert table.prefixes[0] == "/static/"
        assert len(table) == 4
        with pytest.raises(AttributeError):
            table._routes = ()

    def test_concurrent_dispatch(self):
        """The frozen table is shared read-only across threads."""
        router = self.make_router()
        router.freeze()
        errors = []

        def worker(path, expected):
            for _ in range(200):
                match = router.dispatch(path)
                if match is None or match.route.prefix != expected:
                    errors.append(path)

        threads = [
            threading.Thread(target=worker, args=("/static/a.css", "/static/")),
            threading.Thread(target=worker, args=("/video", "/video")),
            threading.Thread(target=worker, args=("/main.js", "/")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []


class TestHandle:
    """Tests for the dispatch boundary."""

    def test_handler_receives_route_prefix(self):
        router = Router()
        router.register("/static/", dummy_handler)

        response = router.handle(make_request("GET", "/static/style.css"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"/static/"

    def test_no_route_is_404(self):
        router = Router()
        router.register("/video", dummy_handler)

        response = router.handle(make_request("GET", "/missing"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert b"/missing" in response.body

    def test_http_error_mapped(self):
        router = Router()

        @router.route("/video")
        def missing(request):
            raise NotFound("Asset not found: videos.json", body_format=BodyFormat.JSON)

        response = router.handle(make_request("GET", "/video"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b'{"error": "Asset not found: videos.json"}'

    def test_method_not_allowed_has_empty_body(self):
        router = Router()

        @router.route("/video")
        def refuse(request):
            raise MethodNotAllowed()

        response = router.handle(make_request("POST", "/video"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.body == b""

    def test_bad_request_is_text(self):
        router = Router()

        @router.route("/stream")
        def bad(request):
            raise BadRequest("Missing required query parameter: path")

        response = router.handle(make_request("GET", "/stream"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.headers["Content-Type"].startswith("text/plain")
        assert response.body == b"Missing required query parameter: path"

    def test_unexpected_exception_is_500(self, caplog):
        router = Router()

        @router.route("/boom")
        def boom(request):
            raise RuntimeError("disk on fire")

        with caplog.at_level("ERROR", logger="mediaserver.http.router"):
            response = router.handle(make_request("GET", "/boom"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"disk on fire"
        assert "Handler boom failed" in caplog.text
