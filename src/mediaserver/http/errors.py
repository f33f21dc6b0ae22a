"""
=============================================================================
HTTP ERROR TAXONOMY
=============================================================================

Handlers signal failures by raising an HTTPError subclass. The router
turns it into a response at the dispatch boundary using two tables:

    ERROR_STATUS     ErrorKind   → HTTPStatus
    BODY_FORMATTERS  BodyFormat  → function(builder, message)

    ┌─────────────────────┬──────────────────────┬────────┬──────────────┐
    │ Exception           │ ErrorKind            │ Status │ Default body │
    ├─────────────────────┼──────────────────────┼────────┼──────────────┤
    │ NotFound            │ NOT_FOUND            │  404   │ text         │
    │ BadRequest          │ BAD_REQUEST          │  400   │ text         │
    │ MethodNotAllowed    │ METHOD_NOT_ALLOWED   │  405   │ empty        │
    │ InternalError       │ INTERNAL             │  500   │ text         │
    └─────────────────────┴──────────────────────┴────────┴──────────────┘

Each raise site may override the body format, e.g. the metadata endpoint
answers with a JSON envelope:

    raise NotFound("Metadata not found", body_format=BodyFormat.JSON)
    → 404  {"error": "Metadata not found"}

=============================================================================
"""

from enum import Enum
from typing import Callable, Mapping, Optional
from types import MappingProxyType

from ..exceptions import MediaServerError
from .response import HTTPResponse, ResponseBuilder
from .status_codes import HTTPStatus


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    INTERNAL = "internal"


class BodyFormat(Enum):
    TEXT = "text"       # text/plain message
    JSON = "json"       # {"error": message}
    EMPTY = "empty"     # no body at all


ERROR_STATUS: Mapping[ErrorKind, HTTPStatus] = MappingProxyType({
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.BAD_REQUEST: HTTPStatus.BAD_REQUEST,
    ErrorKind.METHOD_NOT_ALLOWED: HTTPStatus.METHOD_NOT_ALLOWED,
    ErrorKind.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
})


def _text_body(builder: ResponseBuilder, message: str) -> ResponseBuilder:
    return builder.text(message)


def _json_body(builder: ResponseBuilder, message: str) -> ResponseBuilder:
    return builder.json({"error": message})


def _empty_body(builder: ResponseBuilder, message: str) -> ResponseBuilder:
    return builder.body(b"")


BODY_FORMATTERS: Mapping[BodyFormat, Callable[[ResponseBuilder, str], ResponseBuilder]] = MappingProxyType({
    BodyFormat.TEXT: _text_body,
    BodyFormat.JSON: _json_body,
    BodyFormat.EMPTY: _empty_body,
})


class HTTPError(MediaServerError):
    """
    Base class for errors that map to an HTTP response.

    Attributes:
        kind: Row of the ERROR_STATUS table
        message: Text placed in the body
        body_format: How the message is rendered
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_format: BodyFormat = BodyFormat.TEXT

    def __init__(
        self,
        message: str = "",
        body_format: Optional[BodyFormat] = None
    ):
        super().__init__(message)
        self.message = message
        self.body_format = body_format or self.default_format

    @property
    def status(self) -> HTTPStatus:
        return ERROR_STATUS[self.kind]


class NotFound(HTTPError):
    kind = ErrorKind.NOT_FOUND


class BadRequest(HTTPError):
    kind = ErrorKind.BAD_REQUEST


class MethodNotAllowed(HTTPError):
    kind = ErrorKind.METHOD_NOT_ALLOWED
    default_format = BodyFormat.EMPTY


class InternalError(HTTPError):
    kind = ErrorKind.INTERNAL


def error_response(error: HTTPError) -> HTTPResponse:
    """Build the response for an HTTPError from the two tables."""
    builder = ResponseBuilder().status(error.status)
    formatter = BODY_FORMATTERS[error.body_format]
    return formatter(builder, error.message).build()


def unhandled_error_response(exc: BaseException) -> HTTPResponse:
    """
    500 for an exception that is not an HTTPError.

    The body carries the raw exception message, which can leak internal
    details (file paths, OS error text) to the client.
    """
    return error_response(InternalError(str(exc)))
