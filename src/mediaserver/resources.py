"""
=============================================================================
RESOURCE LOCATORS
=============================================================================

Two independent ways of finding bytes to send:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ AssetBundle                                                         │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Read-only files shipped inside the package (assets/). Names are     │
    │ relative ("css/site.css"); a name that is empty, absolute or        │
    │ climbs out with ".." is simply not found.                           │
    │                                                                      │
    │     AssetBundle.packaged().child("static").read("index.html")       │
    ├─────────────────────────────────────────────────────────────────────┤
    │ FileLocator                                                         │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Arbitrary filesystem paths exactly as the client sent them. There   │
    │ is NO sandbox: any file readable by the server process can be       │
    │ requested. This is what the /stream endpoint uses.                  │
    └─────────────────────────────────────────────────────────────────────┘

Bundles are located with importlib.resources, so they work from a source
checkout, an installed wheel or a zip.

=============================================================================
"""

from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Union

from .exceptions import MediaServerError


class AssetNotFound(MediaServerError, LookupError):
    """No readable asset with the requested name exists in the bundle."""

    def __init__(self, name: str):
        super().__init__(f"Asset not found: {name}")
        self.name = name


class AssetBundle:
    """
    Read-only view over a directory of bundled assets.

    Usage:
        bundle = AssetBundle.packaged()              # mediaserver/assets
        static = bundle.child("static")
        html = static.read("index.html")

        AssetBundle(Path("/tmp/site"))               # any directory works
    """

    def __init__(self, root: Union[Traversable, Path, str]):
        if isinstance(root, str):
            root = Path(root)
        self.root = root

    @classmethod
    def packaged(cls, package: str = "mediaserver", directory: str = "assets") -> "AssetBundle":
        """Bundle rooted at a directory of an installed package."""
        return cls(resources.files(package).joinpath(directory))

    def child(self, directory: str) -> "AssetBundle":
        """Bundle rooted at a subdirectory of this one."""
        return AssetBundle(self.root.joinpath(*self._parts(directory)))

    def _parts(self, name: str) -> tuple[str, ...]:
        parts = PurePosixPath(name).parts
        if not parts or parts[0] == "/" or ".." in parts:
            raise AssetNotFound(name)
        return tuple(part for part in parts if part != ".")

    def _locate(self, name: str) -> Traversable:
        """
        Resolve a relative asset name to a file inside the bundle.

        Raises:
            AssetNotFound: Empty, absolute or escaping name; missing file;
                           name of a directory.
        """
        parts = self._parts(name)
        if not parts:
            raise AssetNotFound(name)

        target = self.root.joinpath(*parts)
        if not target.is_file():
            raise AssetNotFound(name)
        return target

    def read(self, name: str) -> bytes:
        """Read a whole asset into memory."""
        return self._locate(name).read_bytes()

    def __repr__(self) -> str:
        return f"AssetBundle({str(self.root)!r})"


class FileLocator:
    """
    Unrestricted filesystem access for client-supplied paths.

    Every method takes the raw path string. Relative paths are relative to
    the server's working directory.
    """

    def resolve(self, raw: str) -> Path:
        return Path(raw)

    def exists(self, raw: str) -> bool:
        return self.resolve(raw).exists()

    def size(self, raw: str) -> int:
        return self.resolve(raw).stat().st_size

    def open(self, raw: str) -> BinaryIO:
        """
        Open a file for binary reading.

        Raises:
            IsADirectoryError, PermissionError, FileNotFoundError: from open()
        """
        return open(self.resolve(raw), "rb")
