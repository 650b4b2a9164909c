"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

_WINDOW_DAYS = {"week": 7, "month": 30}


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce ISO strings, epoch seconds/milliseconds or datetimes to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def window_start(window: str | None, now: datetime | None = None) -> datetime | None:
    """Lower bound for a named time window; ``None`` means unbounded."""
    if not window or window == "all":
        return None
    current = now or utc_now()
    if window == "today":
        return current.replace(hour=0, minute=0, second=0, microsecond=0)
    days = _WINDOW_DAYS.get(window)
    if days is None:
        raise ValueError(f"Unknown time window: {window}")
    return current - timedelta(days=days)


def age_in_days(created_at: datetime | None, now: datetime) -> float | None:
    if created_at is None:
        return None
    return (now - created_at).total_seconds() / 86400.0


__all__ = ["utc_now", "parse_timestamp", "window_start", "age_in_days"]
