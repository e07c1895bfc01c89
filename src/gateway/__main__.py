"""
Command-line entry point.

    python -m gateway main:app --app-dir . --host 0.0.0.0 --port 8000 --log-level DEBUG

Unset options fall back to GATEWAY_* environment variables, then defaults.
"""

from __future__ import annotations

import argparse
import sys

from gateway_utils.logging import LEVEL_NAMES, get_logger, setup_logging
from gateway.config import GatewayConfig, load_app
from gateway.server import run

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gateway",
        description="Serve an application over HTTP and WebSocket",
    )
    parser.add_argument("app", nargs="?", help="application as module:attribute")
    parser.add_argument("--host", help="bind host")
    parser.add_argument("--port", type=int, help="bind port")
    parser.add_argument("--log-level", type=str.upper, choices=LEVEL_NAMES, help="logging level")
    parser.add_argument("--app-dir", help="directory to import the application from, e.g. '.'")
    return parser


def config_from_args(argv: list[str] | None = None, environ: dict[str, str] | None = None) -> GatewayConfig:
    """Merge CLI arguments over the environment configuration."""
    args = build_parser().parse_args(argv)
    config = GatewayConfig.from_env(environ)
    if args.app is not None:
        config.app = args.app
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.app_dir is not None:
        config.app_dir = args.app_dir
    config.validate()
    return config


def main(argv: list[str] | None = None) -> int:
    try:
        config = config_from_args(argv)
    except ValueError as e:
        print(f"gateway: {e}", file=sys.stderr)
        return 2
    if config.app is None:
        print("gateway: no application given (argument or GATEWAY_APP)", file=sys.stderr)
        return 2

    setup_logging(config.log_level)
    application = load_app(config.app, config.app_dir)
    logger.info("Serving %s", config.app)
    run(application, config.host, config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
