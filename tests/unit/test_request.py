"""
Unit tests for HTTP request parsing.
"""

import dataclasses

import pytest

from mediaserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/stream"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed with lowercase names."""
        request = parse_request(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.headers["user-agent"] == "pytest"
        assert request.headers["accept"] == "*/*"
        assert request.is_keep_alive is True

    def test_raw_query_string_kept_verbatim(self, sample_get_request: bytes):
        """The raw query is neither decoded nor split."""
        request = parse_request(sample_get_request)
        assert request.query_string == "path=%2Fsrv%2Fvideos%2Fmy+clip.mp4"

    def test_query_keeps_later_question_marks(self):
        request = parse_request(b"GET /stream?path=/tmp/a?b.mp4 HTTP/1.1\r\n\r\n")
        assert request.path == "/stream"
        assert request.query_string == "path=/tmp/a?b.mp4"

    def test_query_string_none_without_question_mark(self):
        request = parse_request(b"GET /stream HTTP/1.1\r\nHost: x\r\n\r\n")
        assert request.query_string is None

    def test_empty_query_string(self):
        request = parse_request(b"GET /stream? HTTP/1.1\r\nHost: x\r\n\r\n")
        assert request.query_string == ""

    def test_path_is_percent_decoded(self):
        request = parse_request(b"GET /static/my%20file.css HTTP/1.1\r\n\r\n")
        assert request.path == "/static/my file.css"

    @pytest.mark.parametrize("target, path", [
        ("//x/style.css", "//x/style.css"),
        ("//static/style.css?v=2", "//static/style.css"),
        ("//", "//"),
    ])
    def test_double_slash_is_a_path_not_a_host(self, target, path):
        request = parse_request(f"GET {target} HTTP/1.1\r\n\r\n".encode())
        assert request.path == path

    def test_absolute_form_target(self):
        request = parse_request(b"GET http://example.com/video?x=1 HTTP/1.1\r\n\r\n")
        assert request.path == "/video"
        assert request.query_string == "x=1"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with a body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/video"
        assert request.body == b'{"title": "Asterix"}'
        assert request.is_keep_alive is False

    def test_body_is_cut_at_content_length(self):
        data = b"POST /video HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef"
        assert parse_request(data).body == b"abc"

    def test_repeated_headers_are_joined(self):
        data = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/json\r\n"
            b"\r\n"
        )
        request = parse_request(data)
        assert request.headers["accept"] == "text/html, application/json"

    def test_http10_keep_alive(self):
        """HTTP/1.0 closes unless keep-alive is requested."""
        request = parse_request(b"GET / HTTP/1.0\r\n\r\n")
        assert request.is_keep_alive is False

        request = parse_request(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
        assert request.is_keep_alive is True


class TestParseErrors:
    """Tests for malformed requests."""

    def test_incomplete_request(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")
        assert exc_info.value.status_code == 400

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GARBAGE\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_unknown_method(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"BREW /pot HTTP/1.1\r\n\r\n")
        assert exc_info.value.status_code == 405

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    def test_request_too_large(self):
        data = b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 200 + b"\r\n\r\n"
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(data, max_size=100)
        assert exc_info.value.status_code == 413

    def test_invalid_content_length(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_incomplete_body(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")
        assert exc_info.value.status_code == 400


class TestHTTPRequest:
    """Tests for HTTPRequest class."""

    def test_request_is_immutable(self):
        request = HTTPRequest(method="GET", path="/")
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.path = "/other"

    def test_with_route_returns_copy(self):
        """with_route() binds the prefix on a copy."""
        request = HTTPRequest(method="GET", path="/static/style.css")
        routed = request.with_route("/static/")

        assert routed.route_prefix == "/static/"
        assert routed.path == "/static/style.css"
        assert request.route_prefix == ""

