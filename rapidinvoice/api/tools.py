"""Tool registration for rapidinvoice-mcp."""
from __future__ import annotations

import logging
from typing import Any

import mcp.types as types
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.lowlevel import Server

from rapidinvoice.api.envelopes import envelope_text
from rapidinvoice.backends.invoices import (
    TOOL_NAME,
    generate_invoice_impl,
    tool_definition,
)
from rapidinvoice.backends.invoices_errors import InvoiceError, InvoiceValidationError
from rapidinvoice.context import ServerContext

_LOGGER = logging.getLogger("rapidinvoice.api.tools")

VALIDATION_MARKER = "❌ Datos inválidos:"


def list_tools() -> list[types.Tool]:
    """Capability listing: the single invoice tool."""

    return [tool_definition()]


def format_validation_error(exc: InvoiceValidationError) -> str:
    lines = [VALIDATION_MARKER]
    lines.extend(f"- {path}: {reason}" for path, reason in exc.errors)
    return "\n".join(lines)


def dispatch_tool_call(
    context: ServerContext, name: str, arguments: Any
) -> list[types.TextContent]:
    """Run a tool call and turn every failure into a single ``ToolError``."""

    try:
        if name != TOOL_NAME:
            raise ToolError(f"Herramienta desconocida: {name}")
        return envelope_text(generate_invoice_impl(context, arguments))
    except ToolError as exc:
        context.audit(f"Error en herramienta {name}: {exc}")
        raise
    except InvoiceValidationError as exc:
        message = format_validation_error(exc)
        _LOGGER.info("Rejected %s arguments: %d violation(s)", name, len(exc.errors))
        context.audit(f"Error en herramienta {name}: {message}")
        raise ToolError(message) from exc
    except InvoiceError as exc:
        _LOGGER.warning("Tool %s failed: %s", name, exc)
        context.audit(f"Error en herramienta {name}: {exc}")
        raise ToolError(str(exc)) from exc
    except Exception as exc:
        _LOGGER.exception("Unexpected failure in tool %s", name)
        context.audit(f"Error en herramienta {name}: {exc}")
        raise ToolError(str(exc)) from exc


def register_tools(server: Server, context: ServerContext) -> list[str]:
    """Attach the list/call handlers to the MCP server."""

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return list_tools()

    # Arguments are validated by the invoice request model so that every
    # violation is reported together.
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        return dispatch_tool_call(context, name, arguments)

    return [TOOL_NAME]


__all__ = [
    "VALIDATION_MARKER",
    "dispatch_tool_call",
    "format_validation_error",
    "list_tools",
    "register_tools",
]
