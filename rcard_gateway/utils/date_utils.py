"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    """Timezone-aware current time; every ledger timestamp uses this clock"""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Serialize to ISO-8601 with explicit UTC offset"""
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


def parse_timestamp(value: str | None) -> Optional[datetime]:
    """
    Parse an ISO date or datetime string into an aware UTC datetime.

    Naive values are taken as UTC. A date-only value maps to midnight of that
    day. Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.combine(date.fromisoformat(value), time.min)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of complete 24h periods from start to end (floored, may be negative)"""
    return int((end - start).total_seconds() // SECONDS_PER_DAY)


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)
