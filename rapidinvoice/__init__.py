"""RapidInvoice MCP server: create invoices through a single MCP tool."""

__version__ = "1.0.0"
