"""Deterministic cadence enforcement over generated program days.

Both entry points share one window selector: walk the days in 7-day windows,
keep preferred days first, fill the remaining slots with a strategy and flip
every other candidate inactive. Content is never removed, so inactive days
still carry their blocks as a lighter-duty fallback.
"""
from __future__ import annotations

import math
from datetime import date
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from app.services.program_dates import (
    WEEKDAY_ABBREVIATIONS,
    add_days,
    normalize_weekdays,
    weekday_abbreviation,
)

WINDOW_DAYS = 7

Fill = Callable[[List[int], int], List[int]]


def evenly_spread(candidates: Sequence[int], count: int) -> List[int]:
    """Pick ``count`` items spaced as evenly as possible across ``candidates``."""
    if count <= 0:
        return []
    items = list(candidates)
    if len(items) <= count:
        return items
    if count == 1:
        return [items[len(items) // 2]]

    picks: List[int] = []
    last = len(items) - 1
    for i in range(count):
        # halves round up
        pick = items[math.floor(i * last / (count - 1) + 0.5)]
        if pick not in picks:
            picks.append(pick)
    # rounding collisions
    for item in items:
        if len(picks) >= count:
            break
        if item not in picks:
            picks.append(item)
    return picks[:count]


def in_order(candidates: Sequence[int], count: int) -> List[int]:
    return list(candidates[: max(0, count)])


def iter_windows(length: int, size: int = WINDOW_DAYS) -> Iterator[range]:
    """Non-overlapping index windows; the final window may be short."""
    for start in range(0, length, size):
        yield range(start, min(length, start + size))


def select_window(
    candidates: Sequence[int],
    limit: int,
    *,
    is_preferred: Callable[[int], bool],
    fill: Fill,
) -> List[int]:
    chosen = [index for index in candidates if is_preferred(index)][: max(0, limit)]
    if len(chosen) < limit:
        remaining = [index for index in candidates if index not in chosen]
        chosen.extend(fill(remaining, limit - len(chosen)))
    return chosen


def apply_cadence(
    items: List[Dict[str, Any]],
    days_per_week: int,
    *,
    is_candidate: Callable[[Dict[str, Any]], bool],
    is_preferred: Callable[[int], bool],
    set_active: Callable[[Dict[str, Any], bool], None],
    fill: Fill,
) -> List[Dict[str, Any]]:
    """Run the window selector over ``items`` in place and return them."""
    for window in iter_windows(len(items)):
        candidates = [index for index in window if is_candidate(items[index])]
        if not candidates:
            continue
        keep = set(select_window(candidates, days_per_week, is_preferred=is_preferred, fill=fill))
        for index in candidates:
            set_active(items[index], index in keep)
    return items


def clamp_days_per_week(value: Any, default: int = 5) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    return max(1, min(7, number))


def has_content(day: Any) -> bool:
    if not isinstance(day, dict):
        return False
    blocks = day.get("blocks")
    notes = day.get("notes")
    return bool(blocks) or (isinstance(notes, str) and bool(notes.strip()))


def _set_flat_active(day: Dict[str, Any], active: bool) -> None:
    day["active"] = active


def enforce_days_per_week(
    days: Sequence[Any],
    effective_date: date,
    days_per_week: Any,
    preferred_weekdays: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """Activate exactly ``days_per_week`` content days per window starting at ``effective_date``.

    Preferred weekdays are taken first in array order; the remaining slots are
    spread evenly over the other candidates. Days without content are inactive.
    """
    target = clamp_days_per_week(days_per_week)
    preferred = set(normalize_weekdays(list(preferred_weekdays or [])))
    out = [dict(day) if isinstance(day, dict) else {} for day in days]

    for day in out:
        if not has_content(day):
            day["active"] = False

    def is_preferred(index: int) -> bool:
        return bool(preferred) and weekday_abbreviation(add_days(effective_date, index)) in preferred

    return apply_cadence(
        out,
        target,
        is_candidate=has_content,
        is_preferred=is_preferred,
        set_active=_set_flat_active,
        fill=evenly_spread,
    )


def _row_plan(row: Dict[str, Any]) -> Dict[str, Any]:
    plan = row.get("plan")
    return plan if isinstance(plan, dict) else row


def _row_is_active(row: Dict[str, Any]) -> bool:
    return _row_plan(row).get("active") is True


def _set_row_active(row: Dict[str, Any], active: bool) -> None:
    _row_plan(row)["active"] = active


def enforce_cadence(
    rows: Sequence[Any],
    days_per_week: Any,
    preferred_offsets: Sequence[int] = (),
) -> List[Dict[str, Any]]:
    """Turn off excess active rows per 7-row window; never activates a row.

    Rows carry their flag either in a nested ``plan`` object or at the top
    level. ``preferred_offsets`` are 0-6 positions inside each window.
    """
    target = clamp_days_per_week(days_per_week)
    offsets = {offset for offset in preferred_offsets if 0 <= offset < WINDOW_DAYS}
    out: List[Dict[str, Any]] = []
    for row in rows:
        copied = dict(row) if isinstance(row, dict) else {}
        if isinstance(copied.get("plan"), dict):
            copied["plan"] = dict(copied["plan"])
        out.append(copied)

    return apply_cadence(
        out,
        target,
        is_candidate=_row_is_active,
        is_preferred=lambda index: index % WINDOW_DAYS in offsets,
        set_active=_set_row_active,
        fill=in_order,
    )


def weekday_offsets(start: date, weekdays: Optional[Iterable[str]]) -> List[int]:
    """Window positions of the given weekdays when windows begin on ``start``."""
    labels = normalize_weekdays(list(weekdays or []))
    return sorted((WEEKDAY_ABBREVIATIONS.index(label) - start.weekday()) % WINDOW_DAYS for label in labels)
