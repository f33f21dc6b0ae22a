"""
=============================================================================
HANDLERS MODULE
=============================================================================

The endpoints served by mediaserver.

=============================================================================
WHAT IS A HANDLER?
=============================================================================

A handler receives a parsed, routed request and returns a response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST → HANDLER → RESPONSE                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    Request                 Handler                 Response         │
    │   ┌─────────┐           ┌─────────┐           ┌─────────┐          │
    │   │ GET     │           │         │           │ 200 OK  │          │
    │   │ /stream │ ────────▶ │ handle()│ ────────▶ │ video/  │          │
    │   │ ?path=  │           │         │           │ mp4 ... │          │
    │   └─────────┘           └─────────┘           └─────────┘          │
    │                              │                                       │
    │                              └── raise NotFound(...) ──▶ 404        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUILT-IN HANDLERS
=============================================================================

    ┌────────────────────┬──────────────┬─────────────────────────────────┐
    │ Handler            │ Mounted at   │ Serves                          │
    ├────────────────────┼──────────────┼─────────────────────────────────┤
    │ StaticAssetHandler │ /, /static/  │ bundled front-end files         │
    │ MetadataHandler    │ /video       │ bundled videos.json (GET only)  │
    │ StreamHandler      │ /stream      │ any local file, 8 KiB chunks    │
    └────────────────────┴──────────────┴─────────────────────────────────┘

=============================================================================
"""

from .base import RequestHandler
from .static import StaticAssetHandler
from .metadata import MetadataHandler
from .stream import StreamHandler, FileStreamBody, decode_path_parameter

__all__ = [
    "RequestHandler",
    "StaticAssetHandler",
    "MetadataHandler",
    "StreamHandler",
    "FileStreamBody",
    "decode_path_parameter",
]
