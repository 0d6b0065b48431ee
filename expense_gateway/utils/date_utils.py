"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from typing import List, Tuple


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_years(from_date: datetime, years: int) -> datetime:
    """Same calendar day `years` later; Feb 29 falls back to Feb 28"""
    try:
        return from_date.replace(year=from_date.year + years)
    except ValueError:
        return from_date.replace(year=from_date.year + years, day=28)


def renewal_period_key(value: datetime, frequency: str) -> Tuple[int, int]:
    """
    Bucket a timestamp into its renewal period.

    month   -> (year, 1..12)
    quarter -> (year, 0..3)
    year    -> (year, 0)
    """
    if frequency == "month":
        return value.year, value.month
    if frequency == "quarter":
        return value.year, (value.month - 1) // 3
    if frequency == "year":
        return value.year, 0
    raise ValueError(f"Unknown renewal frequency: {frequency}")


def last_n_months(today: date, count: int) -> List[Tuple[int, int]]:
    """(year, month) pairs for the last `count` months, oldest first, ending with today's month"""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))
