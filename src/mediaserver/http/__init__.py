"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw bytes from TCP into structured HTTP messages and back, and
decides which handler answers a request.

=============================================================================
MODULE COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST PARSER (request.py)                                         │
    │ Raw bytes → frozen HTTPRequest (method, path, raw query, headers)   │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │ HTTPResponse + ResponseBuilder; StreamingBody for lazy bodies;      │
    │ write-once ResponseWriter that puts a response on the wire          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ERRORS (errors.py)                                                  │
    │ NotFound / BadRequest / MethodNotAllowed / InternalError and the    │
    │ tables that turn them into responses                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │ Longest-prefix dispatch over a frozen RouteTable                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES / MIME TYPES                                           │
    │ HTTPStatus enum; extension → Content-Type table                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .status_codes import HTTPStatus
from .mime_types import DEFAULT_MIME_TYPE, MIME_TYPES, get_mime_type
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ResponseWriter,
    StreamingBody,
    WriterState,
)
from .errors import (
    HTTPError,
    NotFound,
    BadRequest,
    MethodNotAllowed,
    InternalError,
    ErrorKind,
    BodyFormat,
    error_response,
)
from .router import Router, Route, RouteMatch, RouteTable

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ResponseWriter",
    "StreamingBody",
    "WriterState",

    # Errors
    "HTTPError",
    "NotFound",
    "BadRequest",
    "MethodNotAllowed",
    "InternalError",
    "ErrorKind",
    "BodyFormat",
    "error_response",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "RouteTable",

    # Status codes and MIME types
    "HTTPStatus",
    "DEFAULT_MIME_TYPE",
    "MIME_TYPES",
    "get_mime_type",
]
