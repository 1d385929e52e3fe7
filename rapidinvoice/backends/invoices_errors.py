"""Error taxonomy for the invoice workflow."""
from __future__ import annotations


class InvoiceError(Exception):
    """Base class for every failure surfaced by the invoice pipeline."""


class InvoiceValidationError(InvoiceError):
    """Raised when the tool arguments do not describe a valid invoice.

    ``errors`` holds one ``(dotted_path, reason)`` pair per violation.
    """

    def __init__(self, errors: list[tuple[str, str]]):
        self.errors = list(errors)
        super().__init__(
            "; ".join(f"{path}: {reason}" for path, reason in self.errors)
        )


class AuthenticationError(InvoiceError):
    """Raised when the configured API key does not match any user."""

    def __init__(self, message: str = "❌ API Key inválida: Usuario no encontrado"):
        super().__init__(message)


class QuotaExceededError(InvoiceError):
    """Raised when the user has used up the monthly invoice allowance."""

    def __init__(self, usage: int, limit: int):
        self.usage = usage
        self.limit = limit
        super().__init__(f"❌ Límite mensual alcanzado: {usage}/{limit} facturas")


class DuplicateInvoiceNumberError(InvoiceError):
    """Raised when another invoice already uses the requested number."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__("❌ Error: Ya existe una factura con ese número")


class StoreError(InvoiceError):
    """Any other persistence failure."""


__all__ = [
    "AuthenticationError",
    "DuplicateInvoiceNumberError",
    "InvoiceError",
    "InvoiceValidationError",
    "QuotaExceededError",
    "StoreError",
]
