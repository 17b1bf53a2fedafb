"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    python -m httpprobe                          # 127.0.0.1:8080
    python -m httpprobe --port 3000
    python -m httpprobe --host 0.0.0.0 --workers 32
    python -m httpprobe --log-level DEBUG        # log every digest decision
    python -m httpprobe --log-format json        # JSON access log

Flags override HTTPPROBE_* environment variables, which override the
ServerConfig defaults.

=============================================================================
"""

import argparse
import dataclasses
import sys
from typing import List, Optional

from . import __version__
from .app import create_server
from .config import ServerConfig, LOG_LEVELS, LOG_FORMATS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpprobe",
        description="HTTP testing service: digest/basic/bearer auth and range requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpprobe                       # Run with defaults
  python -m httpprobe --port 3000           # Custom port
  python -m httpprobe --host 0.0.0.0        # Listen on all interfaces
  python -m httpprobe --workers 32          # Up to 32 concurrent connections
        """
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads; each paced /range stream holds one (default: 16)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpprobe {__version__}"
    )
    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then whatever flags were given on top."""
    config = ServerConfig.from_env()

    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.workers is not None:
        overrides["max_workers"] = args.workers
        overrides["min_workers"] = min(config.min_workers, args.workers)
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_format is not None:
        overrides["log_format"] = args.log_format

    return dataclasses.replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    server = create_server(config)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
