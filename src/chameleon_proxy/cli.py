"""
Command line entry point for running the proxy.

Usage:
    chameleon-proxy                                  - settings from environment variables
    chameleon-proxy --port 3000 --backend api:8080   - port/backend override PORT/BACKEND_URL
"""

import argparse
import logging
import sys

import uvicorn
from pydantic import ValidationError

from chameleon_proxy.app_builder import app, initialize
from chameleon_proxy.config_loader import get_config_from_env_vars, set_config
from chameleon_proxy.telemetry import configure_logging, configure_telemetry

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chameleon-proxy",
        description="HTTP proxy that records backend responses and replays them later",
    )
    parser.add_argument("--port", type=int, default=None, help="port to listen on (overrides PORT)")
    parser.add_argument(
        "--backend", default=None, help="backend URL to proxy to, http:// is assumed if omitted (overrides BACKEND_URL)"
    )
    parser.add_argument("--host", default="0.0.0.0", help="interface to bind (default: 0.0.0.0)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = get_config_from_env_vars(logger, port=args.port, backend=args.backend)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 1

    configure_logging(config.log_level)
    configure_telemetry(logger)

    set_config(config)
    initialize()

    uvicorn.run(app, host=args.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
