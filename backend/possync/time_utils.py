from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with millisecond precision and trailing 'Z'.
    If dt is naive, it is treated as UTC.

    Milliseconds are kept because clients compare updatedAt values at that
    resolution; truncating to seconds would turn newer writes into ties.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    """Client-side 'now' as an ISO-8601 string (the wire format)."""
    return to_utc_z(utcnow())


def to_millis(value: Any) -> float:
    """
    Epoch milliseconds for a wire timestamp.

    Missing, blank or unparseable values sort as the oldest possible time (0).
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = parse_iso_datetime(str(value))
        except ValueError:
            return 0.0
        if dt is None:
            return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes come back naive (SQLite) or aware (Postgres); compare as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def later_than(previous: Optional[datetime]) -> datetime:
    """
    'Now' truncated to milliseconds (the wire resolution), bumped to be
    strictly after `previous` when the clock has not moved past it.
    """
    now = utcnow()
    now = now.replace(microsecond=now.microsecond - now.microsecond % 1000)
    previous = as_naive_utc(previous)
    if previous is not None and now <= previous:
        now = previous.replace(microsecond=previous.microsecond - previous.microsecond % 1000) + timedelta(milliseconds=1)
    return now
