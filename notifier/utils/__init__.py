"""Small shared helpers: identifiers, signatures and UTC time handling."""

from .hashing import new_id, sign, verify_signature
from .timestamps import (
    Clock,
    ensure_utc,
    format_timestamp,
    from_storage,
    parse_iso_datetime,
    to_storage,
    utc_now,
)

__all__ = [
    "new_id",
    "sign",
    "verify_signature",
    "Clock",
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "to_storage",
    "from_storage",
]
