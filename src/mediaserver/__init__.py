"""
=============================================================================
MEDIASERVER
=============================================================================

A small threaded HTTP/1.1 server for a video front-end, built directly on
sockets:

    GET /                 bundled web front-end (index.html)
    GET /static/<name>    bundled CSS / JS / images
    GET /video            bundled video catalogue (JSON)
    GET /stream?path=...  any local file, streamed in 8 KiB chunks

=============================================================================
PACKAGE LAYOUT
=============================================================================

    mediaserver/
    ├── core/           sockets, connections, worker pool
    ├── http/           parser, responses, errors, router, MIME table
    ├── handlers/       static assets, metadata, file streaming
    ├── assets/         packaged front-end and videos.json
    ├── resources.py    AssetBundle and FileLocator
    ├── config.py       ServerConfig
    ├── server.py       HTTPServer (lifecycle, keep-alive loop)
    ├── app.py          create_app(): the route table
    └── __main__.py     python -m mediaserver

=============================================================================
QUICK START
=============================================================================

    from mediaserver import ServerConfig, create_app

    create_app(ServerConfig(port=8080)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .exceptions import MediaServerError, ResponseCommittedError, RouterStateError, ServerStateError
from .server import HTTPServer
from .app import create_app

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "create_app",
    "MediaServerError",
    "ResponseCommittedError",
    "RouterStateError",
    "ServerStateError",
    "__version__",
]
