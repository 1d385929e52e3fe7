"""Logging setup and the append-only audit trail."""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import portalocker

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"

_LOGGER = logging.getLogger("rapidinvoice.audit")


def configure_root(level: int = logging.INFO) -> None:
    """Reset the root logger to a single stderr handler.

    stdout is reserved for the MCP stdio transport.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def record_audit_event(message: str, path: Optional[Path]) -> None:
    """Append ``<ISO timestamp>: message`` to the audit log at ``path``.

    Does nothing when ``path`` is None. Write failures are logged, not raised.
    """

    if path is None:
        return

    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with portalocker.Lock(path, mode="a", timeout=5, encoding="utf-8") as handle:
            handle.write(f"{timestamp}: {message}\n")
    except (OSError, portalocker.LockException):
        _LOGGER.warning("Could not write audit log %s", path, exc_info=True)


__all__ = ["LOG_FORMAT", "configure_root", "record_audit_event"]
