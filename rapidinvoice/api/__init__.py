"""API surface for rapidinvoice-mcp."""

from .tools import dispatch_tool_call, list_tools, register_tools

__all__ = ["dispatch_tool_call", "list_tools", "register_tools"]
