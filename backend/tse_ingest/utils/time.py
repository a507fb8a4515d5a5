from __future__ import annotations
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_or_none(value) -> str | None:
    """Serialize an optional datetime for JSON payloads."""
    return value.isoformat() if value else None
