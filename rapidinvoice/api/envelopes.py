"""Envelope helpers for MCP tool responses."""
from __future__ import annotations

import mcp.types as types


def envelope_text(text: str) -> list[types.TextContent]:
    return [types.TextContent(type="text", text=text)]


__all__ = ["envelope_text"]
