"""
=============================================================================
STATIC ASSET HANDLER
=============================================================================

Serves the web front-end bundled with the package (assets/static).

=============================================================================
PATH → ASSET NAME
=============================================================================

The same handler is mounted at "/" and at "/static/":

    ┌──────────────────────────┬──────────────┬─────────────────────────┐
    │ Request path             │ Route prefix │ Asset name              │
    ├──────────────────────────┼──────────────┼─────────────────────────┤
    │ /                        │ /            │ index.html              │
    │ /main.js                 │ /            │ main.js                 │
    │ /static/style.css        │ /static/     │ style.css               │
    │ /static/img/logo.png     │ /static/     │ img/logo.png            │
    │ /static/                 │ /static/     │ ""  → 404               │
    │ /static/../secret        │ /static/     │ ../secret → 404         │
    └──────────────────────────┴──────────────┴─────────────────────────┘

Names that escape the bundle never reach the filesystem; AssetBundle
refuses them and the client gets the same 404 as for a missing file.

There is no method filtering: POST / answers exactly like GET /.

=============================================================================
"""

import logging

from ..http.errors import NotFound
from ..http.mime_types import get_mime_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus
from ..resources import AssetBundle, AssetNotFound
from .base import RequestHandler


logger = logging.getLogger(__name__)


class StaticAssetHandler(RequestHandler):
    """
    Handler for bundled static assets.

    Usage:
        static = StaticAssetHandler(AssetBundle.packaged().child("static"))
        router.register("/", static)
        router.register("/static/", static)

    The whole asset is read into memory; bundled front-end files are small.
    """

    def __init__(self, bundle: AssetBundle, index_file: str = "index.html"):
        """
        Args:
            bundle: Bundle the asset names are resolved against
            index_file: Asset served for the bare "/" path
        """
        self.bundle = bundle
        self.index_file = index_file

    def asset_name(self, request: HTTPRequest) -> str:
        """Relative asset name for a request (route prefix stripped)."""
        if request.path == "/":
            return self.index_file
        return request.path[len(request.route_prefix):]

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        name = self.asset_name(request)

        try:
            content = self.bundle.read(name)
        except AssetNotFound as e:
            logger.debug(f"Static miss: {request.path} ({name!r})")
            raise NotFound(str(e)) from e

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(get_mime_type(name))
            .header("Content-Length", str(len(content)))
            .body(content)
            .build())

    def __repr__(self) -> str:
        return f"StaticAssetHandler({self.bundle!r})"
