#!/usr/bin/env python3
"""
Lightweight smoke test for rapidinvoice-mcp.

Creates a temporary SQLite database, seeds a user, runs the generar_factura
tool once through the dispatcher, and prints the confirmation text.
"""
from __future__ import annotations

import sys
import tempfile
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rapidinvoice.api import dispatch_tool_call  # noqa: E402
from rapidinvoice.backends.invoices_models import User  # noqa: E402
from rapidinvoice.backends.invoices_storage import SqlInvoiceStore  # noqa: E402
from rapidinvoice.context import ServerContext  # noqa: E402

SMOKE_USER_ID = "smoke-user-0001"


def main() -> None:
    workdir = Path(tempfile.mkdtemp(prefix="rapidinvoice-smoke-"))
    database_url = f"sqlite:///{workdir / 'smoke.db'}"

    context = ServerContext(
        api_key=SMOKE_USER_ID,
        store=SqlInvoiceStore(database_url),
        audit_log_path=workdir / "mcp-server.log",
    )

    with context:
        context.store.save_user(
            User(
                id=SMOKE_USER_ID,
                email="owner@example.com",
                name="M.A.D. Solutions",
                monthly_invoice_limit=10,
            )
        )

        due = date.today() + timedelta(days=14)
        content = dispatch_tool_call(
            context,
            "generar_factura",
            {
                "clientName": "ACME S.L.",
                "clientEmail": "facturas@acme.example",
                "clientAddress": "Calle Mayor 5",
                "clientCity": "Madrid",
                "clientPostalCode": "28013",
                "clientCountry": "España",
                "dueDate": due.isoformat(),
                "items": [
                    {"description": "Consultoría", "quantity": 2, "unitPrice": 150},
                    {"description": "Implementación", "quantity": 1, "unitPrice": 800, "taxRate": 10},
                ],
            },
        )

    print(f"[smoke] database: {database_url}")
    print(f"[smoke] audit log: {workdir / 'mcp-server.log'}")
    print(content[0].text)
    print("[smoke] Done.")


if __name__ == "__main__":  # pragma: no cover
    main()
