"""UTC timestamp helpers and the clock abstraction.

Every component that needs "now" takes a ``Clock`` (a zero-argument callable
returning an aware UTC datetime) instead of calling ``datetime.now`` directly,
so tests can drive virtual time.

Persisted timestamps use a fixed-width ISO-8601 form
(``2026-03-02T10:30:00.000000Z``) which sorts lexically in time order; the
repositories rely on that for range filters.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return ``dt`` as an aware UTC datetime (naive values are taken as UTC).

    Example:
        >>> ensure_utc(datetime(2026, 3, 2, 12, 0)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime for a timestamp column.

    Args:
        dt: Datetime to store (naive values are treated as UTC)

    Returns:
        Fixed-width ISO-8601 string, or None
    """
    dt = ensure_utc(dt)
    if dt is None:
        return None
    return dt.strftime(STORAGE_FORMAT)


def from_storage(value: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp column value written by ``to_storage``.

    Values without a fractional part are accepted as well.
    """
    if not value:
        return None

    trimmed = value.rstrip("Z")
    try:
        dt = datetime.strptime(trimmed, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(trimmed, "%Y-%m-%dT%H:%M:%S")
    return dt.replace(tzinfo=timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse a loosely formatted ISO-8601 string (``Z`` suffix, offset or date only).

    Returns:
        Aware UTC datetime, or None when the string is empty or unparseable

    Example:
        >>> parse_iso_datetime("2026-03-02T12:00:00Z").hour
        12
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        pass

    try:
        return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
    except ValueError:
        return None


def format_timestamp(dt: Optional[datetime]) -> str:
    """Second-precision ISO-8601 string with ``Z`` suffix, for logs and API output."""
    dt = ensure_utc(dt)
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")
