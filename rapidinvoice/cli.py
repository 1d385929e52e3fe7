"""Minimal CLI helpers for running the MCP server."""
from __future__ import annotations

import argparse
import logging
import socket
from typing import Callable

from rapidinvoice.backends.invoices_errors import StoreError
from rapidinvoice.context import ServerContext
from rapidinvoice.utils.config import DATABASE_URL, resolve_api_key

ContextFactory = Callable[[str, str], ServerContext]
StartSSE = Callable[[ServerContext, str, int], None]
RunStdIO = Callable[[ServerContext], None]


def build_parser() -> argparse.ArgumentParser:
    """Create an argument parser for the runtime."""

    parser = argparse.ArgumentParser(description="rapidinvoice-mcp server")
    parser.add_argument(
        "--transport",
        type=str,
        default="stdio",
        choices=["stdio", "sse"],
        help="Transport mechanism to expose (default: stdio)",
    )
    parser.add_argument(
        "--mcp-host",
        type=str,
        default="127.0.0.1",
        help="Host for the MCP SSE server",
    )
    parser.add_argument(
        "--mcp-port",
        type=int,
        default=8099,
        help="Port for the MCP SSE server",
    )
    parser.add_argument(
        "--api_key",
        "--api-key",
        dest="api_key",
        type=str,
        default=None,
        help="User id used as API key (falls back to the API_KEY environment variable)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=DATABASE_URL,
        help="SQLAlchemy database URL, or memory:// for a throwaway store",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def run(
    args: argparse.Namespace,
    *,
    logger: logging.Logger,
    context_factory: ContextFactory,
    start_sse: StartSSE,
    run_stdio: RunStdIO,
) -> None:
    """Resolve credentials, connect the store and serve until shutdown."""

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    api_key = resolve_api_key(args.api_key)
    if not api_key:
        logger.error("❌ Error: API_KEY es requerida (use --api_key=VALUE or set API_KEY)")
        raise SystemExit(1)

    if args.mcp_port <= 0 or args.mcp_port > 65535:
        logger.error("Invalid --mcp-port: %s (must be between 1 and 65535)", args.mcp_port)
        raise SystemExit(2)

    logger.info(
        "Starting MCP server (transport=%s, api_key=%s...)",
        args.transport,
        api_key[:8],
    )

    context = context_factory(api_key, args.database_url)
    try:
        context.connect()
    except StoreError as exc:
        logger.error("❌ Error conectando a la base de datos: %s", exc)
        raise SystemExit(1)

    try:
        if args.transport == "sse":
            _check_port_available(args.mcp_host, args.mcp_port, logger=logger)
            logger.debug(
                "MCP SSE server listening on http://%s:%s", args.mcp_host, args.mcp_port
            )
            start_sse(context, args.mcp_host, args.mcp_port)
        else:
            logger.debug("Transport: stdio")
            run_stdio(context)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        context.close()


def _check_port_available(host: str, port: int, *, logger: logging.Logger) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as exc:  # pragma: no cover - depends on local env
            logger.error(
                "MCP SSE port %s is unavailable on %s: %s. Use --mcp-port to pick a free port.",
                port,
                host,
                exc.strerror or exc,
            )
            raise SystemExit(1)


__all__ = ["build_parser", "run"]
