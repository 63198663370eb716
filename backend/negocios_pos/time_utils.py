# Overview: UTC helpers; every timestamp column stores naive UTC.

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Naive UTC 'now', the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed_since(moment: datetime, now: datetime | None = None) -> timedelta:
    """Time since a stored (naive UTC) timestamp."""
    return (now or utcnow()) - moment


def to_utc_z(dt: datetime | None) -> str | None:
    """ISO-8601 with a trailing 'Z', whole seconds. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
