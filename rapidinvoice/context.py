"""Process-wide state shared by the tool handlers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rapidinvoice.backends.invoices_storage import InvoiceStore
from rapidinvoice.utils.logging import record_audit_event

_LOGGER = logging.getLogger("rapidinvoice.context")


@dataclass
class ServerContext:
    """The caller's API key, the store connection and the audit log location."""

    api_key: str
    store: InvoiceStore
    audit_log_path: Optional[Path] = None

    def connect(self) -> None:
        self.store.connect()
        self.audit(f"🔗 Store connected (API key {self.api_key[:8]}...)")

    def close(self) -> None:
        self.store.close()
        _LOGGER.debug("Store closed")

    def audit(self, message: str) -> None:
        record_audit_event(message, self.audit_log_path)

    def __enter__(self) -> "ServerContext":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["ServerContext"]
