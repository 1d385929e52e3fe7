"""MCP backend for invoice creation."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import mcp.types as types

from ..context import ServerContext
from .invoices_errors import AuthenticationError, QuotaExceededError
from .invoices_format import format_confirmation
from .invoices_identifiers import (
    build_public_url,
    generate_public_token,
    next_invoice_number,
)
from .invoices_models import (
    DEFAULT_COMPANY_NAME,
    ClientData,
    CompanyData,
    Invoice,
    InvoiceRequest,
    User,
    parse_invoice_request,
)
from .invoices_pricing import price_items

_LOGGER = logging.getLogger("rapidinvoice.backends.invoices")

TOOL_NAME = "generar_factura"
TOOL_DESCRIPTION = (
    "Genera una nueva factura en RapidInvoice y devuelve el enlace público para visualizarla"
)


def _input_schema() -> dict[str, Any]:
    schema = InvoiceRequest.model_json_schema(by_alias=True)
    schema.pop("title", None)
    schema.pop("description", None)
    return schema


def tool_definition() -> types.Tool:
    """Descriptor returned by capability listing."""

    return types.Tool(
        name=TOOL_NAME,
        description=TOOL_DESCRIPTION,
        inputSchema=_input_schema(),
    )


def _require_user(context: ServerContext) -> User:
    user = context.store.find_user(context.api_key)
    if user is None:
        raise AuthenticationError()
    context.audit(f"✅ Usuario encontrado: {user.email}")
    if user.quota_exhausted:
        raise QuotaExceededError(user.current_invoice_usage, user.monthly_invoice_limit)
    return user


def _build_invoice(
    request: InvoiceRequest, user: User, now: datetime
) -> Invoice:
    priced = price_items(request.items)
    expires_at = (
        now + timedelta(days=request.public_expiration_days)
        if request.make_public
        else None
    )

    return Invoice(
        id=str(uuid.uuid4()),
        user_id=user.id,
        invoice_number=next_invoice_number(user.id, request.invoice_number, now),
        date=request.issue_date or now.date().isoformat(),
        due_date=request.due_date,
        company_data=CompanyData(
            name=user.name or DEFAULT_COMPANY_NAME,
            email=user.email,
        ),
        client_data=ClientData(
            name=request.client_name,
            email=str(request.client_email),
            address=request.client_address,
            city=request.client_city,
            postal_code=request.client_postal_code,
            country=request.client_country,
        ),
        items=priced.items,
        notes=request.notes or "",
        subtotal=priced.subtotal,
        tax=priced.tax,
        tax_rate=priced.tax_rate,
        total=priced.total,
        currency=request.currency,
        language=request.language,
        is_public=request.make_public,
        public_expires_at=expires_at,
        public_token=generate_public_token(),
        created_at=now,
    )


def generate_invoice_impl(
    context: ServerContext,
    arguments: Any,
    *,
    now: datetime | None = None,
) -> str:
    """Validate, price, persist and confirm one invoice for the context's user.

    The insert and the usage increment share one store transaction; the
    increment only succeeds while the user is still below the monthly limit.
    """

    request = parse_invoice_request(arguments)
    user = _require_user(context)

    now = now or datetime.now(timezone.utc)
    invoice = _build_invoice(request, user, now)

    store = context.store
    with store.transaction():
        created = store.create_invoice(invoice)
        if not store.increment_usage(user.id, limit=user.monthly_invoice_limit):
            # Another call used the last slot after our quota check.
            raise QuotaExceededError(
                user.monthly_invoice_limit, user.monthly_invoice_limit
            )

    public_url = build_public_url(created.public_token) if created.is_public else None
    text = format_confirmation(
        created,
        created.items,
        public_url=public_url,
        usage=user.current_invoice_usage + 1,
        limit=user.monthly_invoice_limit,
    )

    _LOGGER.info(
        "Invoice %s created for user %s", created.invoice_number, user.id[:8]
    )
    context.audit(
        f"✅ Factura creada: {created.id} - {public_url or created.invoice_number}"
    )
    return text


__all__ = [
    "TOOL_DESCRIPTION",
    "TOOL_NAME",
    "generate_invoice_impl",
    "tool_definition",
]
