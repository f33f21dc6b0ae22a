"""
pytest configuration and fixtures.
"""

import http.client
from pathlib import Path
from typing import Callable, Generator
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mediaserver import HTTPServer, ServerConfig, create_app
from mediaserver.resources import AssetBundle


INDEX_HTML = b"<!DOCTYPE html><html><body><h1>Videos</h1></body></html>\n"
STYLE_CSS = b"body { background: #000; }\n"
APP_JS = b"console.log('ready');\n"
VIDEOS_JSON = (
    b'[{"title": "Asterix the Gaul", "year": 1967, "duration": 68, '
    b'"videoUrl": "/srv/videos/asterix.mp4"}]'
)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for the stream endpoint."""
    return (
        b"GET /stream?path=%2Fsrv%2Fvideos%2Fmy+clip.mp4 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"title": "Asterix"}'
    head = (
        "POST /video HTTP/1.1\r\n"
        "Host: localhost:8080\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode() + body


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    """
    Asset directory laid out like the packaged one:

        assets/
        ├── videos.json
        └── static/
            ├── index.html
            ├── style.css
            └── js/app.js
    """
    root = tmp_path / "assets"
    (root / "static" / "js").mkdir(parents=True)
    (root / "static" / "index.html").write_bytes(INDEX_HTML)
    (root / "static" / "style.css").write_bytes(STYLE_CSS)
    (root / "static" / "js" / "app.js").write_bytes(APP_JS)
    (root / "videos.json").write_bytes(VIDEOS_JSON)
    return root


@pytest.fixture
def assets(asset_dir: Path) -> AssetBundle:
    return AssetBundle(asset_dir)


@pytest.fixture
def media_file(tmp_path: Path) -> Path:
    """A file spanning several 8 KiB chunks, with a short last chunk."""
    path = tmp_path / "media" / "clip.mp4"
    path.parent.mkdir()
    path.write_bytes(bytes(range(256)) * 80 + b"tail")  # 20484 bytes
    return path


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def running_server(config: ServerConfig, assets: AssetBundle) -> Generator[HTTPServer, None, None]:
    """The media server started on an ephemeral port."""
    server = create_app(config, assets)
    server.start()

    yield server

    server.stop(timeout=2.0)


@pytest.fixture
def client(running_server: HTTPServer) -> Generator[Callable[[], http.client.HTTPConnection], None, None]:
    """Factory for client connections to the running server; all closed afterwards."""
    connections = []

    def connect() -> http.client.HTTPConnection:
        host, port = running_server.address
        conn = http.client.HTTPConnection(host, port, timeout=5)
        connections.append(conn)
        return conn

    yield connect

    for conn in connections:
        conn.close()
