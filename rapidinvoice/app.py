"""MCP server construction and transports."""
from __future__ import annotations

import logging

import anyio
import uvicorn
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from rapidinvoice import __version__
from rapidinvoice.api import register_tools
from rapidinvoice.context import ServerContext

SERVER_NAME = "rapidinvoice-mcp-server"

logger = logging.getLogger("rapidinvoice.app")


def build_server(context: ServerContext) -> Server:
    server: Server = Server(SERVER_NAME, version=__version__)
    loaded = register_tools(server, context)
    logger.debug("Registered tools: %s", ", ".join(loaded))
    return server


def build_sse_app(server: Server) -> Starlette:
    """Starlette app serving the MCP SSE transport plus a health check."""

    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        logger.info("SSE connect client=%s", client_ip)
        async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
            await server.run(streams[0], streams[1], server.create_initialization_options())
        logger.info("SSE disconnect client=%s", client_ip)
        return Response()

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "ok": True,
                "type": "mcp-sse",
                "server": SERVER_NAME,
                "endpoints": {"sse": "/sse", "messages": "/messages/"},
            }
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/sse", handle_sse, methods=["GET"]),
        Mount("/messages/", app=sse.handle_post_message),
    ]
    return Starlette(debug=False, routes=routes)


def run_stdio(server: Server) -> None:
    async def _serve() -> None:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    anyio.run(_serve)


def run_sse(server: Server, host: str, port: int) -> None:
    uvicorn.run(build_sse_app(server), host=host, port=int(port))


__all__ = ["SERVER_NAME", "build_server", "build_sse_app", "run_sse", "run_stdio"]
