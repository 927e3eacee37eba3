from __future__ import annotations

from datetime import date

from app.services.cadence import (
    clamp_days_per_week,
    enforce_cadence,
    enforce_days_per_week,
    evenly_spread,
    weekday_offsets,
)

MONDAY = date(2025, 1, 6)


def _content_days(count: int):
    return [{"active": True, "title": f"Day {i}", "notes": "", "blocks": ["Main set"]} for i in range(count)]


def _active_indexes(days):
    return [index for index, day in enumerate(days) if day["active"]]


def test_preferred_weekdays_are_the_active_set() -> None:
    days = enforce_days_per_week(_content_days(7), MONDAY, 3, ["Mon", "Wed", "Fri"])

    assert _active_indexes(days) == [0, 2, 4]


def test_weekday_names_are_normalized() -> None:
    days = enforce_days_per_week(_content_days(7), MONDAY, 2, ["tuesday", "THU."])

    assert _active_indexes(days) == [1, 3]


def test_remaining_slots_are_spread_evenly() -> None:
    days = enforce_days_per_week(_content_days(7), MONDAY, 3)

    assert _active_indexes(days) == [0, 3, 6]


def test_each_window_gets_exactly_the_target_when_enough_candidates() -> None:
    days = enforce_days_per_week(_content_days(28), MONDAY, 4, ["Sat"])

    for start in range(0, 28, 7):
        window = days[start : start + 7]
        assert sum(1 for day in window if day["active"]) == 4
        assert window[5]["active"] is True


def test_short_final_window_never_exceeds_target() -> None:
    days = enforce_days_per_week(_content_days(10), MONDAY, 5)

    assert sum(1 for day in days[:7] if day["active"]) == 5
    assert sum(1 for day in days[7:] if day["active"]) == 3


def test_days_without_content_are_inactive_and_keep_their_fields() -> None:
    raw = _content_days(7)
    raw[1] = {"active": True, "title": "Rest", "notes": "  ", "blocks": []}

    days = enforce_days_per_week(raw, MONDAY, 7)

    assert days[1]["active"] is False
    assert days[1]["title"] == "Rest"
    assert len(_active_indexes(days)) == 6


def test_inactive_days_keep_their_blocks() -> None:
    days = enforce_days_per_week(_content_days(7), MONDAY, 2)

    assert all(day["blocks"] == ["Main set"] for day in days)


def test_enforce_days_per_week_is_idempotent() -> None:
    raw = _content_days(20)
    raw[3]["blocks"] = []
    once = enforce_days_per_week(raw, MONDAY, 3, ["Sun", "Wed"])
    twice = enforce_days_per_week(once, MONDAY, 3, ["Sun", "Wed"])

    assert once == twice


def test_enforce_days_per_week_does_not_mutate_input() -> None:
    raw = _content_days(7)
    enforce_days_per_week(raw, MONDAY, 1)

    assert all(day["active"] for day in raw)


def test_seven_days_per_week_keeps_every_content_day() -> None:
    days = enforce_days_per_week(_content_days(14), MONDAY, 7)

    assert len(_active_indexes(days)) == 14


def test_enforce_cadence_only_turns_rows_off() -> None:
    rows = [{"date": f"d{i}", "plan": {"active": i % 2 == 0}} for i in range(7)]

    out = enforce_cadence(rows, 5)

    assert [row["plan"]["active"] for row in out] == [row["plan"]["active"] for row in rows]


def test_enforce_cadence_keeps_preferred_then_earliest() -> None:
    rows = [{"plan": {"active": True}} for _ in range(7)]

    out = enforce_cadence(rows, 3, preferred_offsets=[5])

    assert [index for index, row in enumerate(out) if row["plan"]["active"]] == [0, 1, 5]
    assert all(row["plan"]["active"] for row in rows)


def test_enforce_cadence_handles_flat_rows() -> None:
    rows = [{"active": True} for _ in range(7)]

    out = enforce_cadence(rows, 2)

    assert [row["active"] for row in out] == [True, True, False, False, False, False, False]


def test_weekday_offsets_follow_window_start() -> None:
    wednesday = date(2025, 1, 8)

    assert weekday_offsets(wednesday, ["Mon", "Wed", "Fri"]) == [0, 2, 5]


def test_evenly_spread_and_clamp() -> None:
    assert evenly_spread([0, 1, 2, 3, 4, 5, 6], 2) == [0, 6]
    assert evenly_spread([2, 4], 5) == [2, 4]
    assert clamp_days_per_week(0) == 1
    assert clamp_days_per_week(12) == 7
    assert clamp_days_per_week("x") == 5


def test_evenly_spread_rounds_halves_up() -> None:
    assert evenly_spread(range(7), 5) == [0, 2, 3, 5, 6]


def test_default_five_days_per_week_keeps_saturday() -> None:
    days = enforce_days_per_week(_content_days(7), MONDAY, 5)

    assert _active_indexes(days) == [0, 2, 3, 5, 6]
