"""
Application wiring: the four routes of the media server.

    /          StaticAssetHandler  → assets/static/index.html or named asset
    /static/   StaticAssetHandler  → assets/static/<name>
    /video     MetadataHandler     → assets/videos.json
    /stream    StreamHandler       → ?path=<local file>
"""

import logging
from typing import Optional

from .config import ServerConfig
from .handlers import MetadataHandler, StaticAssetHandler, StreamHandler
from .http import Router
from .resources import AssetBundle, FileLocator
from .server import HTTPServer


logger = logging.getLogger(__name__)


def build_router(config: ServerConfig, assets: AssetBundle) -> Router:
    """Register the media routes on a fresh Router."""
    router = Router()

    static = StaticAssetHandler(assets.child("static"))
    router.register("/", static)
    router.register("/static/", static)
    router.register("/video", MetadataHandler(assets, config.metadata_asset))
    router.register("/stream", StreamHandler(FileLocator(), config.stream_chunk_size))

    return router


def create_app(
    config: Optional[ServerConfig] = None,
    assets: Optional[AssetBundle] = None
) -> HTTPServer:
    """
    Create the media server.

    Args:
        config: Server configuration. Defaults are used if omitted.
        assets: Asset bundle holding static/ and the metadata JSON.
                Defaults to the assets packaged with mediaserver.

    Returns:
        An HTTPServer with all routes registered, not yet started.

    Example:
        app = create_app(ServerConfig(port=3000))
        app.run()
    """
    config = config or ServerConfig()
    assets = assets or AssetBundle.packaged()
    logger.debug(f"Using assets from {assets!r}")
    return HTTPServer(config, router=build_router(config, assets))
