"""
=============================================================================
PREFIX ROUTER
=============================================================================

Maps a request path to a handler by longest registered prefix.

=============================================================================
ROUTING ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /static/css/site.css                                           │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTE TABLE (frozen, longest prefix first)                  │   │
    │   │                                                              │   │
    │   │   /static/  → StaticAssetHandler      ← MATCH (8 chars)      │   │
    │   │   /stream   → StreamHandler                                  │   │
    │   │   /video    → MetadataHandler                                │   │
    │   │   /         → StaticAssetHandler      (also a prefix, 1 char)│   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request.with_route("/static/"))                            │
    │        │                                                             │
    │        ▼                                                             │
    │   HTTPResponse   (HTTPError → error table, anything else → 500)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Matching is plain string prefix matching, not segment matching: "/video"
also matches "/videos" and "/video/x". "/" matches every path, so it acts
as the fallback route.

=============================================================================
BUILD THEN FREEZE
=============================================================================

The Router is a builder. Routes are registered while the application is
wired; the server calls freeze() before it starts listening. The frozen
RouteTable is an immutable tuple shared by all worker threads without
locking. Registering after freeze raises RouterStateError.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional
import logging

from ..exceptions import RouterStateError
from .errors import HTTPError, error_response, unhandled_error_response
from .request import HTTPRequest
from .response import HTTPResponse, ResponseBuilder
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# Type alias for handler callables (RequestHandler instances or functions)
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass(frozen=True)
class Route:
    """
    A registered prefix → handler binding.

        Route(prefix="/video", handler=<MetadataHandler>)
    """

    prefix: str                 # Normalized, always starts with "/"
    handler: Handler

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__name__", type(self.handler).__name__)

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefix)


@dataclass(frozen=True)
class RouteMatch:
    """
    Result of a successful dispatch.

    Example:
        Prefix:    /static/
        Path:      /static/css/site.css
        Result:    RouteMatch(route=<Route>, remainder="css/site.css")
    """

    route: Route
    remainder: str              # Path with the matched prefix removed


class RouteTable:
    """
    Immutable, ordered set of routes.

    Routes are kept longest prefix first, so the first match found is the
    longest one.
    """

    __slots__ = ("_routes",)

    def __init__(self, routes: tuple[Route, ...]):
        ordered = sorted(routes, key=lambda route: len(route.prefix), reverse=True)
        object.__setattr__(self, "_routes", tuple(ordered))

    def __setattr__(self, name, value):
        raise AttributeError("RouteTable is immutable")

    def match(self, path: str) -> Optional[RouteMatch]:
        for route in self._routes:
            if route.matches(path):
                return RouteMatch(route=route, remainder=path[len(route.prefix):])
        return None

    @property
    def prefixes(self) -> tuple[str, ...]:
        return tuple(route.prefix for route in self._routes)

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"RouteTable({list(self.prefixes)!r})"


class Router:
    """
    Prefix router: route builder plus dispatch boundary.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()
        router.register("/video", MetadataHandler(bundle))
        router.register("stream", StreamHandler())     # → "/stream"

        @router.route("/ping")
        def ping(request):
            return ResponseBuilder().text("pong").build()

        table = router.freeze()                        # now immutable
        response = router.handle(request)

    ==========================================================================
    """

    def __init__(self):
        self._routes: dict[str, Route] = {}     # Insertion ordered
        self._table: Optional[RouteTable] = None

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def register(self, prefix: str, handler: Handler) -> Route:
        """
        Register a handler for a path prefix.

        Args:
            prefix: Path prefix; a leading "/" is added when missing
            handler: Callable taking an HTTPRequest, returning HTTPResponse

        Returns:
            The registered Route

        Raises:
            ValueError: Blank prefix, missing handler or duplicate prefix
            RouterStateError: The route table is already frozen
        """
        if prefix is None or not prefix.strip():
            raise ValueError("route prefix must be a non-empty string")
        if handler is None or not callable(handler):
            raise ValueError(f"handler for {prefix!r} must be callable")
        if self.frozen:
            raise RouterStateError(
                f"cannot register {prefix!r}: routes are frozen once the server starts"
            )

        prefix = prefix.strip()
        if not prefix.startswith("/"):
            prefix = "/" + prefix

        if prefix in self._routes:
            raise ValueError(f"route already registered: {prefix}")

        route = Route(prefix=prefix, handler=handler)
        self._routes[prefix] = route

        logger.info(f"Route registered: {prefix} -> {route.handler_name}")
        return route

    def route(self, prefix: str) -> Callable[[Handler], Handler]:
        """
        Decorator form of register() for function handlers.

            @router.route("/ping")
            def ping(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.register(prefix, handler)
            return handler
        return decorator

    # =========================================================================
    # FREEZING
    # =========================================================================

    def freeze(self) -> RouteTable:
        """Freeze the routes into a RouteTable. Safe to call repeatedly."""
        if self._table is None:
            self._table = RouteTable(tuple(self._routes.values()))
        return self._table

    @property
    def frozen(self) -> bool:
        return self._table is not None

    @property
    def routes(self) -> list[Route]:
        """Registered routes in registration order."""
        return list(self._routes.values())

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, path: str) -> Optional[RouteMatch]:
        """
        Find the route with the longest prefix of path.

        Before freeze() this matches against the routes registered so far.

        Returns:
            RouteMatch, or None when no prefix matches
        """
        table = self._table or RouteTable(tuple(self._routes.values()))
        return table.match(path)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and run its handler.

        This is the dispatch boundary; it never raises:

            no match                → 404 text naming the path
            handler raises HTTPError → status/body from the error table
            handler raises anything  → 500 with the exception message
        """
        match = self.dispatch(request.path)

        if match is None:
            return (ResponseBuilder()
                .status(HTTPStatus.NOT_FOUND)
                .text(f"No route for path: {request.path}")
                .build())

        route = match.route
        try:
            return route.handler(request.with_route(route.prefix))
        except HTTPError as e:
            logger.debug(f"{request.method} {request.path} -> {int(e.status)} {e.message}")
            return error_response(e)
        except Exception as e:
            logger.exception(f"Handler {route.handler_name} failed for {request.path}")
            return unhandled_error_response(e)
