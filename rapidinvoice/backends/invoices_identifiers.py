"""Invoice numbers and public access tokens."""
from __future__ import annotations

import secrets
import string
import threading
from datetime import datetime, timedelta, timezone

PUBLIC_INVOICE_BASE_URL = "https://www.rapidinvoice.eu/invoice/public/"
PUBLIC_TOKEN_ALPHABET = string.ascii_letters + string.digits
PUBLIC_TOKEN_LENGTH = 32

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PREFIX_LENGTH = 4

_sequence_lock = threading.Lock()
_last_stamp = 0


def _epoch_micros(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - _EPOCH) // timedelta(microseconds=1)


def _next_stamp(now: datetime) -> int:
    """Microsecond timestamp, strictly increasing within this process."""

    global _last_stamp
    with _sequence_lock:
        stamp = max(_epoch_micros(now), _last_stamp + 1)
        _last_stamp = stamp
        return stamp


def next_invoice_number(
    user_id: str, supplied_number: str | None, now: datetime
) -> str:
    """Return the caller's number verbatim, or derive one from the user and clock.

    Generated numbers look like ``ABCD-1735689600000000``: the first four
    characters of the user id upper-cased, then a microsecond timestamp.
    """

    if supplied_number:
        return supplied_number
    prefix = user_id[:_PREFIX_LENGTH].upper()
    return f"{prefix}-{_next_stamp(now)}"


def generate_public_token() -> str:
    return "".join(
        secrets.choice(PUBLIC_TOKEN_ALPHABET) for _ in range(PUBLIC_TOKEN_LENGTH)
    )


def build_public_url(public_token: str) -> str:
    return f"{PUBLIC_INVOICE_BASE_URL}{public_token}"


__all__ = [
    "PUBLIC_INVOICE_BASE_URL",
    "PUBLIC_TOKEN_ALPHABET",
    "PUBLIC_TOKEN_LENGTH",
    "build_public_url",
    "generate_public_token",
    "next_invoice_number",
]
