"""Runtime configuration helpers for the MCP server."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Final, Optional

from dotenv import load_dotenv

# Load .env file from project root (if it exists)
load_dotenv()


def _parse_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    return value in {"1", "true", "yes", "on"}


def _env_bool(name: str, *, default: bool = False) -> bool:
    return _parse_bool(os.getenv(name), default=default)


DEFAULT_DATABASE_URL: Final[str] = "sqlite:///rapidinvoice.db"
DEFAULT_AUDIT_LOG: Final[str] = "mcp-server.log"

DATABASE_URL: Final[str] = os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL
CREATE_SCHEMA: Final[bool] = _env_bool("MCP_DB_CREATE_SCHEMA", default=True)

_audit_log_env = os.getenv("MCP_AUDIT_LOG", DEFAULT_AUDIT_LOG).strip()
AUDIT_LOG_PATH: Final[Optional[Path]] = (
    Path(_audit_log_env).expanduser() if _audit_log_env else None
)


def resolve_api_key(cli_value: str | None = None) -> Optional[str]:
    """Return the caller's API key.

    Priority:
    1. ``--api_key=VALUE`` on the command line
    2. ``API_KEY`` environment variable
    """

    if cli_value and cli_value.strip():
        return cli_value.strip()
    env_value = os.getenv("API_KEY", "").strip()
    return env_value or None


__all__ = [
    "AUDIT_LOG_PATH",
    "CREATE_SCHEMA",
    "DATABASE_URL",
    "DEFAULT_AUDIT_LOG",
    "DEFAULT_DATABASE_URL",
    "resolve_api_key",
]
