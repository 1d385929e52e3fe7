"""Pydantic models for invoice handling."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    conlist,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .invoices_errors import InvoiceValidationError

DEFAULT_CURRENCY = "EUR"
DEFAULT_LANGUAGE = "es"
DEFAULT_TAX_RATE = 21.0
DEFAULT_PUBLIC_EXPIRATION_DAYS = 30.0
DEFAULT_COMPANY_NAME = "Tu Empresa"

# Decimal amounts are kept exact in Python and written as JSON numbers.
JsonDecimal = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


class _RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class LineItemRequest(_RequestModel):
    description: str = Field(
        min_length=1, max_length=512, description="Descripción del producto/servicio"
    )
    quantity: float = Field(gt=0, strict=True, description="Cantidad")
    unit_price: float = Field(gt=0, strict=True, description="Precio unitario")
    tax_rate: float = Field(
        default=DEFAULT_TAX_RATE,
        ge=0,
        strict=True,
        description="Tasa de impuesto en porcentaje (por defecto 21)",
    )

    @field_validator("tax_rate", mode="before")
    @classmethod
    def _default_tax_rate(cls, value: Any) -> Any:
        return DEFAULT_TAX_RATE if value is None else value


class InvoiceRequest(_RequestModel):
    """Arguments of the ``generar_factura`` tool, defaults applied.

    String values are kept exactly as received.
    """

    client_name: str = Field(
        min_length=1, max_length=256, description="Nombre completo del cliente"
    )
    client_email: str = Field(
        description="Email del cliente", json_schema_extra={"format": "email"}
    )
    client_address: str = Field(
        min_length=1, max_length=256, description="Dirección del cliente"
    )
    client_city: str = Field(
        min_length=1, max_length=128, description="Ciudad del cliente"
    )
    client_postal_code: str = Field(
        min_length=1, max_length=32, description="Código postal del cliente"
    )
    client_country: str = Field(
        min_length=1, max_length=128, description="País del cliente"
    )

    invoice_number: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Número de factura (opcional, se autogenera si no se proporciona)",
    )
    issue_date: str | None = Field(
        default=None,
        alias="date",
        description="Fecha de la factura en formato YYYY-MM-DD (opcional, por defecto hoy)",
    )
    due_date: str = Field(
        min_length=1, description="Fecha de vencimiento en formato YYYY-MM-DD"
    )

    items: list[LineItemRequest] = Field(
        min_length=1, description="Lista de productos/servicios en la factura"
    )

    currency: str = Field(
        default=DEFAULT_CURRENCY, min_length=1, description="Moneda (por defecto EUR)"
    )
    language: str = Field(
        default=DEFAULT_LANGUAGE,
        min_length=1,
        description="Idioma de la factura (por defecto es)",
    )
    notes: str | None = Field(
        default=None, max_length=2000, description="Notas adicionales en la factura"
    )

    make_public: bool = Field(
        default=True,
        strict=True,
        description="Hacer la factura visible públicamente (por defecto true)",
    )
    public_expiration_days: float = Field(
        default=DEFAULT_PUBLIC_EXPIRATION_DAYS,
        ge=0,
        strict=True,
        description="Días hasta que expire el enlace público (por defecto 30)",
    )

    @field_validator(
        "client_name",
        "client_address",
        "client_city",
        "client_postal_code",
        "client_country",
    )
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("blank value")
        return value

    @field_validator("client_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        # Syntax only; the address is stored as sent.
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(str(exc)) from exc
        return value


# Reasons reported for a field whatever constraint it broke.
_FIELD_REASONS: dict[str, str] = {
    "clientName": "El nombre del cliente es obligatorio",
    "clientEmail": "Email del cliente inválido",
    "clientAddress": "La dirección del cliente es obligatoria",
    "clientCity": "La ciudad del cliente es obligatoria",
    "clientPostalCode": "El código postal es obligatorio",
    "clientCountry": "El país del cliente es obligatorio",
    "invoiceNumber": "El número de factura no puede estar vacío",
    "dueDate": "La fecha de vencimiento es obligatoria",
    "items": "Debe incluir al menos un item",
    "description": "La descripción del item es obligatoria",
    "quantity": "La cantidad debe ser mayor a 0",
    "unitPrice": "El precio unitario debe ser mayor a 0",
    "taxRate": "La tasa de impuesto no puede ser negativa",
    "publicExpirationDays": "Los días de expiración no pueden ser negativos",
}

# Type mismatches take precedence over the field reason.
_TYPE_REASONS: dict[str, str] = {
    "string_type": "Debe ser un texto",
    "float_type": "Debe ser un número",
    "finite_number": "Debe ser un número finito",
    "bool_type": "Debe ser verdadero o falso",
    "list_type": "Debe ser una lista",
    "model_type": "Debe ser un objeto",
    "model_attributes_type": "Debe ser un objeto",
    "string_too_long": "El texto es demasiado largo",
    "too_long": "Demasiados elementos",
}


def _error_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "arguments"


def _error_reason(error: dict[str, Any]) -> str:
    kind = error["type"]
    if kind in _TYPE_REASONS:
        return _TYPE_REASONS[kind]
    fields = [part for part in error["loc"] if isinstance(part, str)]
    if fields and fields[-1] in _FIELD_REASONS:
        return _FIELD_REASONS[fields[-1]]
    if kind == "missing":
        return "Campo obligatorio"
    return "Valor inválido"


def parse_invoice_request(arguments: Any) -> InvoiceRequest:
    """Validate raw tool arguments, collecting every violation at once."""

    try:
        return InvoiceRequest.model_validate(arguments if arguments is not None else {})
    except ValidationError as exc:
        errors = [(_error_path(err["loc"]), _error_reason(err)) for err in exc.errors()]
        raise InvoiceValidationError(errors) from exc


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )


class CompanyData(_RecordModel):
    name: str
    email: str


class ClientData(_RecordModel):
    name: str
    email: str
    address: str
    city: str
    postal_code: str
    country: str


class LineItem(_RecordModel):
    description: str
    quantity: float
    unit_price: float
    tax_rate: float
    total: JsonDecimal


class User(_RecordModel):
    id: str
    email: str
    name: str | None = None
    monthly_invoice_limit: int = Field(ge=0)
    current_invoice_usage: int = Field(default=0, ge=0)

    @property
    def quota_exhausted(self) -> bool:
        return self.current_invoice_usage >= self.monthly_invoice_limit


class Invoice(_RecordModel):
    id: str
    user_id: str

    invoice_number: str
    date: str
    due_date: str

    company_data: CompanyData
    client_data: ClientData
    items: conlist(LineItem, min_length=1)
    notes: str = ""

    subtotal: JsonDecimal
    tax: JsonDecimal
    tax_rate: JsonDecimal
    total: JsonDecimal

    currency: str = DEFAULT_CURRENCY
    language: str = DEFAULT_LANGUAGE

    is_public: bool = True
    public_expires_at: datetime | None = None
    public_token: str
    created_at: datetime


__all__ = [
    "ClientData",
    "CompanyData",
    "DEFAULT_COMPANY_NAME",
    "DEFAULT_CURRENCY",
    "DEFAULT_LANGUAGE",
    "DEFAULT_PUBLIC_EXPIRATION_DAYS",
    "DEFAULT_TAX_RATE",
    "Invoice",
    "InvoiceRequest",
    "LineItem",
    "LineItemRequest",
    "User",
    "parse_invoice_request",
]
