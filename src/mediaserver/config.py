"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All runtime settings live in one dataclass. Values come from defaults,
from MEDIA_* environment variables (ServerConfig.from_env) or from the
command line (__main__), and are validated once at startup.

There are no config files and no reloading: a running server keeps the
configuration it was started with.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the media server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout
    HTTP         keep_alive, keep_alive_timeout, max_request_size
    THREADING    workers
    CONTENT      stream_chunk_size, metadata_asset
    LOGGING      log_level
    IDENTITY     server_name

    =========================================================================
    EXAMPLES
    =========================================================================

        ServerConfig()                                # 0.0.0.0:8080, 10 workers
        ServerConfig(host="127.0.0.1", port=0)        # ephemeral port (tests)
        ServerConfig(workers=32, log_level="DEBUG")

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0"   - All network interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = 8080
    """
    The port number to listen on. 0 lets the OS pick a free port; the
    actual port is available from HTTPServer.address after start().
    """

    backlog: int = 128
    """Maximum number of connections queued by the OS before accept()."""

    buffer_size: int = 8192
    """recv() size in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for the first request on a connection and
    for every send. None blocks forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Reuse connections for several requests (HTTP/1.1 default)."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a keep-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Requests larger than this are answered with 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 10
    """
    Number of worker threads. Fixed for the server's lifetime; each worker
    serves one connection at a time, so this caps concurrent streams.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    stream_chunk_size: int = 8192
    """Bytes copied per read/write when streaming a file."""

    metadata_asset: str = "videos.json"
    """Bundled JSON asset served at /video."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "MediaServer/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

            MEDIA_HOST       Bind address (default: 0.0.0.0)
            MEDIA_PORT       Port (default: 8080)
            MEDIA_WORKERS    Worker threads (default: 10)
            MEDIA_TIMEOUT    Socket timeout in seconds (default: 30)
            MEDIA_LOG_LEVEL  Logging level (default: INFO)

        =====================================================================
        USAGE
        =====================================================================

            MEDIA_PORT=3000 MEDIA_LOG_LEVEL=DEBUG python -m mediaserver

        =====================================================================

        Raises:
            ValueError: A numeric variable does not parse.
        """
        return cls(
            host=os.getenv("MEDIA_HOST", "0.0.0.0"),
            port=int(os.getenv("MEDIA_PORT", "8080")),
            workers=int(os.getenv("MEDIA_WORKERS", "10")),
            timeout=float(os.getenv("MEDIA_TIMEOUT", "30")),
            log_level=os.getenv("MEDIA_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Configuration is checked at startup, not at first use, so a bad
        value stops the server before it binds.

        Raises:
            ValueError: Describing the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.buffer_size < 1024:
            raise ValueError(f"buffer_size must be >= 1024, got {self.buffer_size}")
        if self.stream_chunk_size <= 0:
            raise ValueError(f"stream_chunk_size must be > 0, got {self.stream_chunk_size}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.keep_alive_timeout <= 0:
            raise ValueError(f"keep_alive_timeout must be > 0, got {self.keep_alive_timeout}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        if not self.metadata_asset:
            raise ValueError("metadata_asset must not be empty")
