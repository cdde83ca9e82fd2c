"""
Clock and limits policy for AI suggestions: UTC day window for the daily quota
and the expiry window measured from creation time. Pure functions only.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

DAILY_SUGGESTION_LIMIT = 3
SUGGESTION_TTL = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day_window(now: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the UTC calendar day containing `now`."""
    start = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def compute_expires_at(created_at: datetime, ttl: timedelta = SUGGESTION_TTL) -> datetime:
    return as_utc(created_at) + ttl


def is_past_expiry(created_at: datetime, now: datetime, ttl: timedelta = SUGGESTION_TTL) -> bool:
    """True once `now` reaches created_at + ttl (the boundary instant counts as expired)."""
    return as_utc(now) >= compute_expires_at(created_at, ttl)


def quota_exceeded(count_today: int, limit: int = DAILY_SUGGESTION_LIMIT) -> bool:
    return count_today >= limit
