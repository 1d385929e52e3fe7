"""Line item and invoice total calculation."""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from .invoices_models import JsonDecimal, LineItem, LineItemRequest

_HUNDRED = Decimal(100)
_ZERO = Decimal(0)


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert a request number without picking up binary float noise."""

    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class PricedInvoice(BaseModel):
    """Processed line items plus the aggregate amounts, unrounded."""

    model_config = ConfigDict(frozen=True)

    items: list[LineItem]
    subtotal: JsonDecimal
    tax: JsonDecimal
    total: JsonDecimal
    tax_rate: JsonDecimal


def price_items(items: Iterable[LineItemRequest]) -> PricedInvoice:
    subtotal = _ZERO
    total_tax = _ZERO
    processed: list[LineItem] = []

    for item in items:
        line_subtotal = to_decimal(item.quantity) * to_decimal(item.unit_price)
        line_tax = line_subtotal * to_decimal(item.tax_rate) / _HUNDRED

        subtotal += line_subtotal
        total_tax += line_tax

        processed.append(
            LineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                total=line_subtotal + line_tax,
            )
        )

    blended_rate = total_tax / subtotal * _HUNDRED if subtotal > 0 else _ZERO
    return PricedInvoice(
        items=processed,
        subtotal=subtotal,
        tax=total_tax,
        total=subtotal + total_tax,
        tax_rate=blended_rate,
    )


__all__ = ["PricedInvoice", "price_items", "to_decimal"]
