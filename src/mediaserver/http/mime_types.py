"""
=============================================================================
MIME TYPE RESOLUTION
=============================================================================

Maps a file name to the Content-Type a browser needs to interpret it.
Resolution is purely extension based:

    "index.html"      →  ".html"  →  text/html; charset=UTF-8
    "LOGO.PNG"        →  ".png"   →  image/png        (case-insensitive)
    "trailer.mkv"     →  ".mkv"   →  application/octet-stream (unmapped)

The table is read-only (MappingProxyType). Entries are constants and
nothing may add to it at runtime; handlers on every worker thread read
it without locking.

=============================================================================
"""

from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Mapping, Optional, Union


# Default for anything not in the table: "opaque bytes, download it"
DEFAULT_MIME_TYPE = "application/octet-stream"


# =============================================================================
# MIME TYPE TABLE
# =============================================================================
#
# Keys are lower-cased extensions including the dot.
#
# =============================================================================

MIME_TYPES: Mapping[str, str] = MappingProxyType({
    # -------------------------------------------------------------------------
    # DOCUMENTS & SCRIPTS
    # -------------------------------------------------------------------------
    ".html": "text/html; charset=UTF-8",
    ".htm": "text/html; charset=UTF-8",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".txt": "text/plain",

    # -------------------------------------------------------------------------
    # IMAGES
    # -------------------------------------------------------------------------
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",

    # -------------------------------------------------------------------------
    # MEDIA
    # -------------------------------------------------------------------------
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mp3": "audio/mpeg",

    # -------------------------------------------------------------------------
    # FONTS
    # -------------------------------------------------------------------------
    ".woff": "font/woff",
    ".woff2": "font/woff2",
})


def get_mime_type(name: Union[str, PurePosixPath], default: Optional[str] = None) -> str:
    """
    Get the content type for a file name based on its extension.

    Args:
        name: File name or relative asset path ("css/site.css")
        default: Returned for unmapped extensions instead of
                 application/octet-stream

    Returns:
        The content type string

    Examples:
        >>> get_mime_type("index.html")
        'text/html; charset=UTF-8'

        >>> get_mime_type("img/Poster.JPG")
        'image/jpeg'

        >>> get_mime_type("notes")
        'application/octet-stream'
    """
    extension = PurePosixPath(str(name)).suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)
