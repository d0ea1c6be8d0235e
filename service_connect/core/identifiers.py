from __future__ import annotations

import uuid
from datetime import UTC, datetime


def normalize_id(value: object) -> str | None:
    """Canonical lowercase hyphenated form of a UUID string, or None if malformed."""
    if not isinstance(value, str):
        return None
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        return None


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
