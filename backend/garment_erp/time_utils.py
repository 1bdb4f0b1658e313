# Overview: Clock and calendar helpers; UTC-naive storage, Z-suffixed output and financial years.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# Financial years run April to March
FY_START_MONTH = 4


def utcnow() -> datetime:
    """Naive UTC 'now'; every timestamp column stores this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a request date or datetime into naive UTC.

    "2025-06-15" is midnight of that day, a naive "2025-06-15T09:30" is
    taken as UTC, and a trailing "Z" or offset is converted. Blank -> None.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 at second precision with a trailing 'Z'; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def financial_year(when: Optional[datetime] = None) -> str:
    """
    Four-digit financial year code used in PO numbers.

    2025-04-01 .. 2026-03-31 -> "2526"
    """
    when = when or utcnow()
    start = when.year if when.month >= FY_START_MONTH else when.year - 1
    return f"{start % 100:02d}{(start + 1) % 100:02d}"
