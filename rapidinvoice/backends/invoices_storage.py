"""Persistence adapters for users and invoices."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .invoices_errors import DuplicateInvoiceNumberError, StoreError
from .invoices_models import Invoice, User

_LOGGER = logging.getLogger("rapidinvoice.backends.storage")

MEMORY_URL = "memory://"


class InvoiceStore(Protocol):
    """Operations the invoice pipeline needs from a store."""

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def find_user(self, user_id: str) -> Optional[User]: ...

    def save_user(self, user: User) -> None: ...

    def create_invoice(self, invoice: Invoice) -> Invoice: ...

    def increment_usage(self, user_id: str, *, limit: int | None = None) -> bool: ...

    def transaction(self) -> Any: ...


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(256), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    monthly_invoice_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_invoice_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class InvoiceRow(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    date: Mapped[str] = mapped_column(String(32), nullable=False)
    due_date: Mapped[str] = mapped_column(String(32), nullable=False)

    company_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    client_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    language: Mapped[str] = mapped_column(String(16), nullable=False)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    public_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    public_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _invoice_row(invoice: Invoice) -> InvoiceRow:
    snapshot = invoice.model_dump(mode="json", include={"company_data", "client_data", "items"})
    columns = invoice.model_dump(exclude={"company_data", "client_data", "items"})
    return InvoiceRow(**columns, **snapshot)


def _is_invoice_number_conflict(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: invoices.invoice_number"
    # PostgreSQL: 'duplicate key ... constraint "invoices_invoice_number_key"'
    return "invoice_number" in str(exc.orig)


class SqlInvoiceStore:
    """Store backed by a relational database through SQLAlchemy."""

    def __init__(self, url: str, *, create_schema: bool = True) -> None:
        self.url = url
        self.create_schema = create_schema
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None
        self._active: Session | None = None

    def connect(self) -> None:
        if self._engine is not None:
            return

        engine = create_engine(self.url)
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            if self.create_schema:
                Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            raise StoreError(f"Could not connect to database: {exc}") from exc

        self._engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)
        _LOGGER.info("Connected to database %s", engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessions = None
        _LOGGER.info("Database connection closed")

    def _require_sessions(self) -> sessionmaker[Session]:
        if self._sessions is None:
            raise StoreError("Store is not connected")
        return self._sessions

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._active is not None:
            yield self._active
            return
        with self._require_sessions().begin() as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group store operations so they commit or roll back together."""

        if self._active is not None:
            yield
            return

        try:
            with self._require_sessions().begin() as session:
                self._active = session
                try:
                    yield
                finally:
                    self._active = None
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def find_user(self, user_id: str) -> Optional[User]:
        try:
            with self._session() as session:
                row = session.get(UserRow, user_id)
                if row is None:
                    return None
                return User.model_validate(row, from_attributes=True)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def save_user(self, user: User) -> None:
        try:
            with self._session() as session:
                session.merge(UserRow(**user.model_dump()))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def create_invoice(self, invoice: Invoice) -> Invoice:
        try:
            with self._session() as session:
                session.add(_invoice_row(invoice))
                session.flush()
        except IntegrityError as exc:
            if _is_invoice_number_conflict(exc):
                raise DuplicateInvoiceNumberError(invoice.invoice_number) from exc
            raise StoreError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return invoice

    def increment_usage(self, user_id: str, *, limit: int | None = None) -> bool:
        """Add one to the user's usage counter, only while below ``limit`` if given."""

        stmt = update(UserRow).where(UserRow.id == user_id)
        if limit is not None:
            stmt = stmt.where(UserRow.current_invoice_usage < limit)
        stmt = stmt.values(
            current_invoice_usage=UserRow.current_invoice_usage + 1
        ).execution_options(synchronize_session=False)

        try:
            with self._session() as session:
                result = session.execute(stmt)
                return result.rowcount == 1
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def get_invoice(self, invoice_number: str) -> Optional[Invoice]:
        try:
            with self._session() as session:
                row = session.scalars(
                    select(InvoiceRow).where(InvoiceRow.invoice_number == invoice_number)
                ).one_or_none()
                if row is None:
                    return None
                return Invoice.model_validate(row, from_attributes=True)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc


class InMemoryInvoiceStore:
    """Process-local store used by tests and dry runs."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self.users: dict[str, User] = {user.id: user for user in users}
        self.invoices: dict[str, Invoice] = {}
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        users, invoices = dict(self.users), dict(self.invoices)
        try:
            yield
        except BaseException:
            self.users, self.invoices = users, invoices
            raise

    def find_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def save_user(self, user: User) -> None:
        self.users[user.id] = user

    def create_invoice(self, invoice: Invoice) -> Invoice:
        if invoice.invoice_number in self.invoices:
            raise DuplicateInvoiceNumberError(invoice.invoice_number)
        self.invoices[invoice.invoice_number] = invoice
        return invoice

    def increment_usage(self, user_id: str, *, limit: int | None = None) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        if limit is not None and user.current_invoice_usage >= limit:
            return False
        self.users[user_id] = user.model_copy(
            update={"current_invoice_usage": user.current_invoice_usage + 1}
        )
        return True

    def get_invoice(self, invoice_number: str) -> Optional[Invoice]:
        return self.invoices.get(invoice_number)


def create_store(url: str, *, create_schema: bool = True) -> InvoiceStore:
    """Return the store for ``url``; ``memory://`` selects the in-memory store."""

    if url == MEMORY_URL:
        return InMemoryInvoiceStore()
    return SqlInvoiceStore(url, create_schema=create_schema)


__all__ = [
    "Base",
    "InMemoryInvoiceStore",
    "InvoiceRow",
    "InvoiceStore",
    "MEMORY_URL",
    "SqlInvoiceStore",
    "UserRow",
    "create_store",
]
