"""
=============================================================================
MEDIA SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (0.0.0.0:8080, 10 workers)
    python -m mediaserver

    # Custom port, localhost only
    python -m mediaserver --host 127.0.0.1 --port 3000

    # More worker threads (= more concurrent streams)
    python -m mediaserver --workers 32

Environment variables (MEDIA_HOST, MEDIA_PORT, MEDIA_WORKERS,
MEDIA_TIMEOUT, MEDIA_LOG_LEVEL) supply the defaults; command-line
arguments override them.

=============================================================================
"""

import argparse
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import LOG_LEVELS, ServerConfig


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediaserver",
        description="Threaded HTTP server for a video front-end and local file streaming",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m mediaserver                         # 0.0.0.0:8080
  python -m mediaserver --port 3000             # Custom port
  python -m mediaserver --host 127.0.0.1        # Localhost only
  python -m mediaserver --log-level DEBUG       # Verbose logging
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.workers,
        help=f"Number of worker threads (default: {defaults.workers})"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"mediaserver {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Reads configuration from the environment, lets the command line
    override it, validates it and runs the server until SIGINT/SIGTERM.

    Args:
        argv: Arguments without the program name. Defaults to sys.argv[1:].

    Returns:
        Process exit code.
    """
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"mediaserver: invalid environment: {e}", file=sys.stderr)
        return 2

    parser = build_parser(defaults)
    args = parser.parse_args(argv)

    config = replace(
        defaults,
        host=args.host,
        port=args.port,
        workers=args.workers,
        log_level=args.log_level,
    )

    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    create_app(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
