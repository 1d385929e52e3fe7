import tempfile
import unittest
from pathlib import Path

from factories import USER_ID, make_user, valid_arguments

import mcp.types as types
from mcp.server.fastmcp.exceptions import ToolError

from rapidinvoice.api.tools import (
    VALIDATION_MARKER,
    dispatch_tool_call,
    list_tools,
)
from rapidinvoice.backends.invoices_errors import StoreError
from rapidinvoice.backends.invoices_storage import InMemoryInvoiceStore
from rapidinvoice.context import ServerContext

REQUIRED_FIELDS = [
    "clientName",
    "clientEmail",
    "clientAddress",
    "clientCity",
    "clientPostalCode",
    "clientCountry",
    "dueDate",
    "items",
]


class ListToolsTests(unittest.TestCase):
    def test_single_tool_is_listed(self):
        tools = list_tools()

        self.assertEqual(len(tools), 1)
        self.assertEqual(tools[0].name, "generar_factura")
        self.assertIn("RapidInvoice", tools[0].description)

    def test_schema_required_fields(self):
        schema = list_tools()[0].inputSchema

        self.assertEqual(schema["type"], "object")
        self.assertEqual(sorted(schema["required"]), sorted(REQUIRED_FIELDS))

    def test_schema_lists_optional_fields_by_wire_name(self):
        properties = list_tools()[0].inputSchema["properties"]

        for name in (
            "invoiceNumber",
            "date",
            "currency",
            "language",
            "notes",
            "makePublic",
            "publicExpirationDays",
        ):
            self.assertIn(name, properties)
        self.assertEqual(properties["clientEmail"]["description"], "Email del cliente")


class DispatchToolCallTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tempdir.cleanup)
        self.audit_path = Path(self.tempdir.name) / "audit" / "mcp-server.log"

        self.store = InMemoryInvoiceStore([make_user()])
        self.context = ServerContext(
            api_key=USER_ID, store=self.store, audit_log_path=self.audit_path
        )

    def test_success_returns_text_content(self):
        content = dispatch_tool_call(self.context, "generar_factura", valid_arguments())

        self.assertEqual(len(content), 1)
        self.assertIsInstance(content[0], types.TextContent)
        self.assertEqual(content[0].type, "text")
        self.assertIn("Factura generada exitosamente", content[0].text)

    def test_unknown_tool_is_rejected(self):
        with self.assertRaises(ToolError) as ctx:
            dispatch_tool_call(self.context, "borrar_factura", {})

        self.assertIn("Herramienta desconocida: borrar_factura", str(ctx.exception))

    def test_validation_errors_are_listed_line_by_line(self):
        arguments = valid_arguments(
            clientEmail="broken",
            items=[{"description": "A", "quantity": -1, "unitPrice": 10}],
        )

        with self.assertRaises(ToolError) as ctx:
            dispatch_tool_call(self.context, "generar_factura", arguments)

        lines = str(ctx.exception).splitlines()
        self.assertEqual(lines[0], VALIDATION_MARKER)
        self.assertTrue(any(line.startswith("- clientEmail: ") for line in lines))
        self.assertTrue(any(line.startswith("- items.0.quantity: ") for line in lines))
        self.assertEqual(self.store.invoices, {})

    def test_domain_errors_keep_their_message(self):
        self.context.api_key = "unknown"

        with self.assertRaises(ToolError) as ctx:
            dispatch_tool_call(self.context, "generar_factura", valid_arguments())

        self.assertEqual(str(ctx.exception), "❌ API Key inválida: Usuario no encontrado")

    def test_store_errors_surface_their_message(self):
        def _fail(user_id):
            raise StoreError("connection reset")

        self.store.find_user = _fail

        with self.assertRaises(ToolError) as ctx:
            dispatch_tool_call(self.context, "generar_factura", valid_arguments())

        self.assertEqual(str(ctx.exception), "connection reset")

    def test_errors_are_appended_to_audit_log(self):
        with self.assertRaises(ToolError):
            dispatch_tool_call(self.context, "generar_factura", valid_arguments(clientEmail="x"))
        with self.assertRaises(ToolError):
            dispatch_tool_call(self.context, "otra", {})

        entries = self.audit_path.read_text(encoding="utf-8").splitlines()
        error_entries = [line for line in entries if "Error en herramienta" in line]
        self.assertEqual(len(error_entries), 2)
        self.assertIn("Herramienta desconocida: otra", entries[-1])


if __name__ == "__main__":
    unittest.main()
