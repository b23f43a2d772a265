"""
UTC timestamp utilities (stdlib-only).

Used for ``created_at``/``updated_at`` maintenance, ObjectId generation
times, and the storage form of date/time keys.

Features:
    - **utc_now():** Timezone-aware UTC datetime
    - **ensure_utc():** Naive datetimes are interpreted as UTC
    - **to_iso8601() / from_iso8601():** Serialization round-trip
    - **from_unix():** Unix timestamps to aware datetimes

STDLIB ONLY.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_unix(seconds: float) -> datetime:
    """Convert a Unix timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to datetime."""
    if s is None:
        return None
    return datetime.fromisoformat(s.strip())


__all__ = ["utc_now", "ensure_utc", "from_unix", "to_iso8601", "from_iso8601"]
