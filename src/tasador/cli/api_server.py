#!/usr/bin/env python
"""
CLI for serving one agent's valuation workspace over HTTP.

Usage:
    python -m tasador.cli.api_server
    python -m tasador.cli.api_server --agent agent-1 --port 8080
    python -m tasador.cli.api_server --store memory --debug
"""

import argparse
import sys

from tasador.config import get_config
from tasador.exceptions import TasadorError
from tasador.logging_config import setup_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve the active and saved valuations of one agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m tasador.cli.api_server
    python -m tasador.cli.api_server --agent agent-1 --port 8080
    python -m tasador.cli.api_server --store memory --debug
        """,
    )
    parser.add_argument("--host", type=str, default=None, help="Bind address (default: from config)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    parser.add_argument("--agent", type=str, default=None, help="Agent id (default: from config)")
    parser.add_argument(
        "--store",
        choices=["sqlite", "memory"],
        default=None,
        help="Document store backend; memory loses everything on exit",
    )
    parser.add_argument("--db", type=str, default=None, help="SQLite file for the sqlite store")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set log level",
    )
    return parser


def main():
    """Main entry point for the API server CLI."""
    args = build_parser().parse_args()

    setup_logging(level=args.log_level)
    logger = get_logger(__name__)

    # Command-line choices override the environment for this process only
    config = get_config()
    if args.store:
        config.store.backend = args.store
    if args.db:
        config.store.path = args.db

    from tasador.api.server import run_server
    from tasador.valuation.session import ValuationSession

    try:
        session = ValuationSession.from_config(config, agent_id=args.agent)
        logger.info(
            "Serving agent %s from %s store",
            session.agent_id, config.store.backend,
        )
        run_server(host=args.host, port=args.port, debug=args.debug or None, session=session)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except TasadorError as e:
        logger.error("Could not start server: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
