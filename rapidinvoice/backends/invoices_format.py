"""Human-readable confirmation text for created invoices."""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from .invoices_models import DEFAULT_LANGUAGE, Invoice, LineItem
from .invoices_pricing import to_decimal

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")

_LABELS: dict[str, dict[str, str]] = {
    "es": {
        "SUCCESS": "✅ **Factura generada exitosamente**",
        "INVOICE_NUMBER": "📄 **Número de factura:**",
        "CLIENT": "👤 **Cliente:**",
        "EMAIL": "📧 **Email:**",
        "DATE": "📅 **Fecha:**",
        "DUE_DATE": "⏰ **Vencimiento:**",
        "TOTAL": "💰 **Total:**",
        "SUBTOTAL": "🧾 **Subtotal:**",
        "TAX": "📊 **IVA",
        "ITEMS": "📋 **Items facturados:**",
        "PUBLIC_LINK": "🔗 **Enlace público de la factura:**",
        "EXPIRES": "⏱️ **El enlace expira el:**",
        "SHARE_HINT": "💡 **Comparte este enlace con tu cliente para que pueda ver y descargar la factura.**",
        "USAGE": "📊 **Estado de tu cuenta:** {usage}/{limit} facturas usadas este mes",
        "DATE_FORMAT": "{day}/{month}/{year}",
    },
    "en": {
        "SUCCESS": "✅ **Invoice created successfully**",
        "INVOICE_NUMBER": "📄 **Invoice number:**",
        "CLIENT": "👤 **Client:**",
        "EMAIL": "📧 **Email:**",
        "DATE": "📅 **Date:**",
        "DUE_DATE": "⏰ **Due date:**",
        "TOTAL": "💰 **Total:**",
        "SUBTOTAL": "🧾 **Subtotal:**",
        "TAX": "📊 **VAT",
        "ITEMS": "📋 **Invoiced items:**",
        "PUBLIC_LINK": "🔗 **Public invoice link:**",
        "EXPIRES": "⏱️ **The link expires on:**",
        "SHARE_HINT": "💡 **Share this link with your client so they can view and download the invoice.**",
        "USAGE": "📊 **Account status:** {usage}/{limit} invoices used this month",
        "DATE_FORMAT": "{month_name} {day}, {year}",
    },
}


def get_labels(language: str | None) -> dict[str, str]:
    """Return the label set for ``language`` (``es-ES`` resolves to ``es``)."""

    key = (language or DEFAULT_LANGUAGE).strip().lower().split("-")[0]
    return _LABELS.get(key, _LABELS[DEFAULT_LANGUAGE])


def _format_amount(value: Decimal | float, currency: str) -> str:
    rounded = to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return f"{rounded} {currency}"


def _format_rate(value: Decimal | float) -> str:
    return f"{to_decimal(value).quantize(_TENTHS, rounding=ROUND_HALF_UP)}%"


def _format_quantity(value: float) -> str:
    return format(to_decimal(value).normalize(), "f")


def _format_expiration(value: datetime, labels: dict[str, str]) -> str:
    return labels["DATE_FORMAT"].format(
        day=value.day,
        month=value.month,
        year=value.year,
        month_name=value.strftime("%B"),
    )


def _format_item_lines(items: Sequence[LineItem], currency: str) -> list[str]:
    lines: list[str] = []
    for idx, item in enumerate(items, start=1):
        lines.append(f"{idx}. {item.description}")
        lines.append(
            f"   {_format_quantity(item.quantity)} × "
            f"{_format_amount(item.unit_price, currency)} = "
            f"{_format_amount(item.total, currency)}"
        )
    return lines


def format_confirmation(
    invoice: Invoice,
    items: Sequence[LineItem],
    *,
    public_url: str | None,
    usage: int,
    limit: int,
) -> str:
    """Render the success message returned by the ``generar_factura`` tool.

    ``usage`` is the counter value after this invoice was counted.
    """

    labels = get_labels(invoice.language)
    currency = invoice.currency

    lines = [
        labels["SUCCESS"],
        "",
        f"{labels['INVOICE_NUMBER']} {invoice.invoice_number}",
        f"{labels['CLIENT']} {invoice.client_data.name}",
        f"{labels['EMAIL']} {invoice.client_data.email}",
        f"{labels['DATE']} {invoice.date}",
        f"{labels['DUE_DATE']} {invoice.due_date}",
        f"{labels['TOTAL']} {_format_amount(invoice.total, currency)}",
        f"{labels['SUBTOTAL']} {_format_amount(invoice.subtotal, currency)}",
        f"{labels['TAX']} ({_format_rate(invoice.tax_rate)}):** "
        f"{_format_amount(invoice.tax, currency)}",
        "",
        labels["ITEMS"],
        *_format_item_lines(items, currency),
        "",
    ]

    if invoice.is_public and public_url:
        lines.extend([labels["PUBLIC_LINK"], public_url, ""])
        if invoice.public_expires_at is not None:
            lines.append(
                f"{labels['EXPIRES']} "
                f"{_format_expiration(invoice.public_expires_at, labels)}"
            )
        lines.extend([labels["SHARE_HINT"], ""])

    lines.append(labels["USAGE"].format(usage=usage, limit=limit))
    return "\n".join(lines)


__all__ = ["format_confirmation", "get_labels"]
