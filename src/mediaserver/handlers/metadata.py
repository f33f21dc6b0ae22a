"""
Video metadata endpoint.

GET /video returns the bundled JSON catalogue (assets/videos.json) exactly
as stored; the bytes are never parsed or re-serialized. Errors use a JSON
envelope so the front-end can always parse the body:

    200  <raw videos.json>
    404  {"error": "Asset not found: videos.json"}
    405  (empty body)           - any method but GET
    500  {"error": "Failed to read metadata: <reason>"}
"""

import logging

from ..http.errors import BodyFormat, InternalError, NotFound
from ..http.request import HTTPRequest
from ..http.response import JSON_CONTENT_TYPE, HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus
from ..resources import AssetBundle, AssetNotFound
from .base import RequestHandler


logger = logging.getLogger(__name__)


class MetadataHandler(RequestHandler):
    """Serves one fixed JSON asset with a permissive CORS origin."""

    allowed_methods = frozenset({"GET"})

    def __init__(self, bundle: AssetBundle, asset_name: str = "videos.json"):
        self.bundle = bundle
        self.asset_name = asset_name

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        self.check_method(request)

        try:
            content = self.bundle.read(self.asset_name)
        except AssetNotFound as e:
            logger.warning(f"Metadata asset missing: {self.asset_name}")
            raise NotFound(str(e), body_format=BodyFormat.JSON) from e
        except Exception as e:
            # Any other failure still answers with the JSON envelope
            logger.error(f"Failed to read metadata {self.asset_name}: {e}")
            raise InternalError(
                f"Failed to read metadata: {e}",
                body_format=BodyFormat.JSON,
            ) from e

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(JSON_CONTENT_TYPE)
            .cors(origin="*")
            .body(content)
            .build())

    def __repr__(self) -> str:
        return f"MetadataHandler({self.asset_name!r})"
