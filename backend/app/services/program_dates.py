"""Calendar helpers for programs. All dates are UTC calendar dates with no timezone shifting."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence, Tuple

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
WEEKDAY_ABBREVIATIONS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WEEKDAY_PREFIX_RE = re.compile(
    r"^\s*(?:%s)\b\s*[:\-\u2013\u2014,|]*\s*" % "|".join(WEEKDAY_NAMES + WEEKDAY_ABBREVIATIONS),
    re.IGNORECASE,
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_iso_date(value: Any) -> date:
    """Parse a strict YYYY-MM-DD string (or pass a date through); raises ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(value.strip())


def try_parse_iso_date(value: Any) -> Optional[date]:
    try:
        return parse_iso_date(value)
    except ValueError:
        return None


def add_days(start: date, count: int) -> date:
    return start + timedelta(days=count)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end precedes start)."""
    return (end - start).days


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[value.weekday()]


def weekday_abbreviation(value: date) -> str:
    return WEEKDAY_ABBREVIATIONS[value.weekday()]


def normalize_weekday(value: Any) -> Optional[str]:
    """Map "monday", "Mon", "MON." and similar onto the three-letter form."""
    if not isinstance(value, str):
        return None
    token = value.strip().lower().rstrip(".")[:3]
    for abbreviation in WEEKDAY_ABBREVIATIONS:
        if abbreviation.lower() == token:
            return abbreviation
    return None


def normalize_weekdays(values: Optional[Sequence[Any]]) -> List[str]:
    """Normalize and dedupe weekday labels while keeping their order."""
    result: List[str] = []
    for value in values or []:
        label = normalize_weekday(value)
        if label and label not in result:
            result.append(label)
    return result


def strip_weekday_prefix(title: str) -> str:
    return _WEEKDAY_PREFIX_RE.sub("", title, count=1).strip()


def with_weekday_prefix(title: str, value: date) -> str:
    """Prefix a title with its weekday name; applying it twice gives the same result."""
    base = strip_weekday_prefix(title)
    name = weekday_name(value)
    return f"{name}: {base}" if base else name


def size_dates_from_days(start: date, day_count: int) -> Tuple[date, date]:
    """Inclusive date range covering ``day_count`` days (at least one) from ``start``."""
    return start, add_days(start, max(1, day_count) - 1)


def split_at(start: date, days: Sequence[Any], effective: date) -> Tuple[date, List[Any]]:
    """Keep the days strictly before ``effective``; returns the new end date and kept days."""
    day_before = add_days(effective, -1)
    keep = max(0, days_between(start, day_before) + 1)
    return day_before, list(days[:keep])
