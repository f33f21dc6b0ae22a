"""
Unit tests for asset bundles and the filesystem locator.
"""

import json
from pathlib import Path

import pytest

from mediaserver.resources import AssetBundle, AssetNotFound, FileLocator


class TestAssetBundle:
    """Tests for AssetBundle class."""

    def test_read(self, assets: AssetBundle, asset_dir: Path):
        static = assets.child("static")
        assert static.read("index.html") == (asset_dir / "static" / "index.html").read_bytes()
        assert static.read("js/app.js") == (asset_dir / "static" / "js" / "app.js").read_bytes()

    def test_dot_segments_ignored(self, assets: AssetBundle, asset_dir: Path):
        assert assets.read("./static/./style.css") == (asset_dir / "static" / "style.css").read_bytes()

    def test_str_root(self, asset_dir: Path):
        assert AssetBundle(str(asset_dir)).read("videos.json") == (asset_dir / "videos.json").read_bytes()

    @pytest.mark.parametrize("name", [
        "missing.css",
        "",
        "js",
        "/etc/passwd",
        "../videos.json",
        "js/../../videos.json",
    ])
    def test_not_found(self, assets: AssetBundle, name: str):
        static = assets.child("static")

        with pytest.raises(AssetNotFound) as exc_info:
            static.read(name)
        assert exc_info.value.name == name
        assert str(exc_info.value) == f"Asset not found: {name}"

    def test_not_found_is_lookup_error(self):
        assert issubclass(AssetNotFound, LookupError)

    def test_packaged_assets(self):
        """The bundled front-end and catalogue ship with the package."""
        bundle = AssetBundle.packaged()
        static = bundle.child("static")

        assert static.read("index.html").lstrip().startswith(b"<!DOCTYPE html>")
        assert static.read("main.js")
        assert static.read("style.css")
        assert isinstance(json.loads(bundle.read("videos.json")), list)


class TestFileLocator:
    """Tests for FileLocator class."""

    def test_existing_file(self, media_file: Path):
        locator = FileLocator()
        raw = str(media_file)

        assert locator.exists(raw)
        assert locator.size(raw) == media_file.stat().st_size
        with locator.open(raw) as f:
            assert f.read() == media_file.read_bytes()

    def test_missing_file(self, tmp_path: Path):
        locator = FileLocator()
        raw = str(tmp_path / "nope.mp4")

        assert not locator.exists(raw)
        with pytest.raises(FileNotFoundError):
            locator.open(raw)

    def test_paths_are_not_sandboxed(self, asset_dir: Path):
        """Any readable path is reachable, including ".." segments."""
        raw = str(asset_dir / "static" / ".." / "videos.json")
        assert FileLocator().resolve(raw).exists()
