"""Main entry point for the Engram MCP server."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import Config, get_config
from .container import reset_container


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Logs go to stderr; stdout carries the MCP stdio transport.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Engram MCP Server - long-lived memory graph for AI agents"
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default=None,
        help="Transport mode (default: from env or stdio)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: from env or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: from env or 8765)",
    )
    parser.add_argument(
        "--store",
        choices=["kuzu", "memory"],
        default=None,
        help="Graph store backend; 'memory' keeps nothing across restarts "
        "(default: from env or kuzu)",
    )
    return parser.parse_args(argv)


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """CLI args override config/env."""
    if args.transport:
        config.server_transport = args.transport
    if args.host:
        config.server_host = args.host
    if args.port:
        config.server_port = args.port
    if args.store:
        config.store = args.store
    return config


def run_server(config: Config, logger: logging.Logger) -> None:
    """Run the MCP server with the configured transport."""
    from .server import mcp

    transport = config.server_transport
    logger.info(f"Transport: {transport}")

    if transport in ("sse", "streamable-http"):
        mcp.settings.host = config.server_host
        mcp.settings.port = config.server_port
        logger.info(f"Listening on http://{config.server_host}:{config.server_port}")
    elif transport != "stdio":
        logger.error(f"Unknown transport: {transport}")
        sys.exit(1)

    try:
        mcp.run(transport=transport)
    finally:
        reset_container()


def main(argv: list[str] | None = None) -> None:
    """Run the Engram MCP server."""
    args = parse_args(argv)
    config = apply_args(get_config(), args)

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    logger.info("Starting Engram MCP")
    logger.info(f"Store: {config.store}")
    if config.store == "kuzu":
        logger.info(f"Data directory: {config.data_dir}")
    logger.info(f"Embedding model: {config.embedding_model}")

    run_server(config, logger)


if __name__ == "__main__":
    main()
