"""
Handler contract.

Every endpoint implements a single method:

    handle(request: HTTPRequest) -> HTTPResponse

Handlers report failures by raising an HTTPError subclass (NotFound,
BadRequest, MethodNotAllowed, InternalError); the router converts it into
a response. Instances are callable, so a handler object and a plain
function can be registered the same way.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..http.errors import BodyFormat, MethodNotAllowed
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


class RequestHandler(ABC):
    """Base class for endpoint handlers."""

    # None means every method is handled the same way
    allowed_methods: Optional[frozenset[str]] = None

    @abstractmethod
    def handle(self, request: HTTPRequest) -> HTTPResponse:
        ...

    def check_method(self, request: HTTPRequest) -> None:
        """Raise MethodNotAllowed (empty body) for a method this handler refuses."""
        if self.allowed_methods is not None and request.method not in self.allowed_methods:
            raise MethodNotAllowed(body_format=BodyFormat.EMPTY)

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
