from __future__ import annotations

from datetime import date, timedelta
from uuid import uuid4

import pytest

from app.core.errors import GenerationError, InvalidRequestError, PeriodConflictError, PeriodNotFoundError
from app.db.models.program import Program
from app.services.day_generator import DayGenerator
from app.services.intent_detector import IntentParsed, IntentResult
from app.services.period_store import PeriodStore
from app.services.program_service import ProgramService, canonical_spec, merge_spec

from conftest import FakeLLM, generated_days

TODAY = date(2025, 1, 6)


def _service(session_factory, llm: FakeLLM | None = None, **kwargs) -> ProgramService:
    llm = llm or FakeLLM({"generator": generated_days})
    return ProgramService(PeriodStore(session_factory), DayGenerator(llm), **kwargs)


def test_canonical_spec_defaults() -> None:
    spec = canonical_spec(None)

    assert spec["agent"] == "Training"
    assert spec["days_per_week"] == 5
    assert spec["modalities"] == ["General"]
    assert spec["training_days"] is None
    assert spec["spec_version"] == 1


def test_merge_spec_bumps_version_and_clamps() -> None:
    merged = merge_spec({"days_per_week": 4, "spec_version": 2}, {"days_per_week": 9, "training_days": ["tuesday"]})

    assert merged["days_per_week"] == 7
    assert merged["training_days"] == ["Tue"]
    assert merged["spec_version"] == 3


@pytest.mark.asyncio
async def test_create_program_is_debounced(session_factory) -> None:
    llm = FakeLLM({"generator": generated_days})
    service = _service(session_factory, llm)
    user_id = uuid4()

    first = await service.create_program(user_id=user_id, program_type="training.v1", today=TODAY)
    second = await service.create_program(user_id=user_id, program_type="training.v1", today=TODAY)

    assert first.reused is False
    assert second.reused is True
    assert second.program.program_id == first.program.program_id
    assert llm.labels() == ["generator"]
    with session_factory() as db:
        assert db.query(Program).count() == 1


@pytest.mark.asyncio
async def test_debounce_does_not_cross_types_or_expire_windows(session_factory) -> None:
    service = _service(session_factory, debounce_seconds=0)
    user_id = uuid4()

    first = await service.create_program(user_id=user_id, program_type="training.v1", today=TODAY)
    again = await service.create_program(user_id=user_id, program_type="training.v1", today=TODAY)
    other = await _service(session_factory).create_program(user_id=user_id, program_type="sleep.v1", today=TODAY)

    assert again.program.program_id != first.program.program_id
    assert other.reused is False


@pytest.mark.asyncio
async def test_create_program_applies_cadence_and_status(session_factory) -> None:
    service = _service(session_factory)

    result = await service.create_program(
        user_id=uuid4(),
        program_type="training.v1",
        start_date=TODAY + timedelta(days=1),
        period_length_weeks=2,
        spec_json={"days_per_week": 3, "training_days": ["Tue", "Thu", "Sat"]},
        today=TODAY,
    )

    days = result.period.days
    assert len(days) == 14
    assert result.program.status == "scheduled"
    assert [day["date"] for day in days if day["active"]][:3] == ["2025-01-07", "2025-01-09", "2025-01-11"]
    assert days[0]["days_from_today"] == 1
    assert days[0]["title"].startswith("Tuesday: ")


@pytest.mark.asyncio
async def test_empty_generation_is_a_hard_failure(session_factory) -> None:
    service = _service(session_factory, FakeLLM({"generator": "{not json"}))

    with pytest.raises(GenerationError, match="Generator returned 0 days."):
        await service.create_program(user_id=uuid4(), program_type="training.v1", today=TODAY)

    with session_factory() as db:
        assert db.query(Program).count() == 0


@pytest.mark.asyncio
async def test_change_program_regenerates_from_effective_date(session_factory) -> None:
    service = _service(session_factory)
    created = await service.create_program(
        user_id=uuid4(), program_type="training.v1", start_date=TODAY, period_length_weeks=1, today=TODAY
    )

    result = await service.change_program(
        created.program.program_id,
        effective_date=TODAY + timedelta(days=2),
        spec_patch={"days_per_week": 2},
        new_period_weeks=1,
        today=TODAY,
    )

    assert result.period.period_index == 1
    assert result.spec_json["days_per_week"] == 2
    assert result.spec_json["spec_version"] == 2
    assert result.program.end_date == TODAY + timedelta(days=8)
    assert sum(1 for day in result.period.days if day["active"]) == 2


@pytest.mark.asyncio
async def test_failed_change_leaves_periods_untouched(session_factory) -> None:
    llm = FakeLLM({"generator": generated_days})
    service = _service(session_factory, llm)
    created = await service.create_program(user_id=uuid4(), program_type="training.v1", today=TODAY)
    llm.responses["generator"] = "garbage"

    with pytest.raises(GenerationError):
        await service.change_program(created.program.program_id, effective_date=TODAY + timedelta(days=3), today=TODAY)

    periods = await service.store.load_periods(created.program.program_id)
    assert len(periods) == 1
    assert len(periods[0].days) == 28


@pytest.mark.asyncio
async def test_change_with_gap_is_rejected_before_generation(session_factory) -> None:
    llm = FakeLLM({"generator": generated_days})
    service = _service(session_factory, llm)
    created = await service.create_program(
        user_id=uuid4(), program_type="training.v1", period_length_weeks=1, today=TODAY
    )

    with pytest.raises(PeriodConflictError):
        await service.change_program(created.program.program_id, effective_date=TODAY + timedelta(days=10), today=TODAY)
    assert llm.labels() == ["generator"]


@pytest.mark.asyncio
async def test_create_and_change_from_chat_intent(session_factory) -> None:
    service = _service(session_factory)
    user_id = uuid4()
    intent = IntentResult(
        should_create=True,
        confidence=0.9,
        agent="Training",
        parsed=IntentParsed(start_date="2025-01-07", duration_weeks=2, days_per_week=3),
        action="create",
    )

    created = await service.create_from_intent(user_id, "Training", intent, "2 week plan please", today=TODAY)
    assert created.program.type == "training.v1"
    assert created.program.spec_json["source"] == "chat"
    assert created.program.start_date == date(2025, 1, 7)

    change = IntentResult(
        confidence=0.9,
        agent="Training",
        parsed=IntentParsed(start_date="2025-01-10", days_per_week=4),
        action="change",
    )
    changed = await service.change_from_intent(user_id, "Training", change, "make it 4 days", today=TODAY)
    assert changed.effective_date == date(2025, 1, 10)
    assert changed.spec_json["days_per_week"] == 4
    assert changed.spec_json["raw_request"] == "make it 4 days"

    assert await service.change_from_intent(user_id, "Sleep", change, "sleep plan change", today=TODAY) is None


@pytest.mark.asyncio
async def test_week_view_flags_missing_days_and_extend_fills_them(session_factory) -> None:
    service = _service(session_factory)
    created = await service.create_program(
        user_id=uuid4(), program_type="training.v1", start_date=TODAY, period_length_weeks=1, today=TODAY
    )
    program_id = created.program.program_id

    week = await service.week_view(program_id, TODAY + timedelta(days=3))
    assert [day["plan"] is not None for day in week["days"]] == [True] * 4 + [False] * 3
    assert week["needs_extension"]["from"] == "2025-01-13"
    assert week["needs_extension"]["required_days"] == 3

    with pytest.raises(PeriodConflictError):
        await service.extend_program(program_id, from_date=TODAY + timedelta(days=9), today=TODAY)

    extended = await service.extend_program(program_id, from_date=TODAY + timedelta(days=7), required_days=3, today=TODAY)
    assert extended.period.period_index == 1
    assert len(extended.period.days) == 3
    assert extended.program.end_date == TODAY + timedelta(days=9)

    week = await service.week_view(program_id, TODAY + timedelta(days=3))
    assert "needs_extension" not in week


@pytest.mark.asyncio
async def test_today_view_activates_scheduled_program(session_factory) -> None:
    service = _service(session_factory)
    created = await service.create_program(
        user_id=uuid4(), program_type="training.v1", start_date=TODAY + timedelta(days=1), today=TODAY
    )
    program_id = created.program.program_id

    with pytest.raises(PeriodNotFoundError):
        await service.today_view(program_id, today=TODAY)

    view = await service.today_view(program_id, today=TODAY + timedelta(days=1))
    assert view["program"].status == "active"
    assert view["today"]["plan"]["date"] == "2025-01-07"


@pytest.mark.asyncio
async def test_window_view_clamps_length(session_factory) -> None:
    service = _service(session_factory)
    created = await service.create_program(user_id=uuid4(), program_type="training.v1", today=TODAY)

    window = await service.window_view(created.program.program_id, TODAY, 500)

    assert window["days"] == 60
    assert len(window["items"]) == 60
    assert window["items"][27]["plan"] is not None
    assert window["items"][28]["plan"] is None


@pytest.mark.asyncio
async def test_patch_period_validates_and_caps_active_days(session_factory) -> None:
    service = _service(session_factory)
    created = await service.create_program(
        user_id=uuid4(),
        program_type="training.v1",
        start_date=TODAY,
        period_length_weeks=1,
        spec_json={"days_per_week": 2},
        today=TODAY,
    )
    program_id = created.program.program_id

    with pytest.raises(InvalidRequestError):
        await service.patch_period(program_id, 0, [])
    with pytest.raises(InvalidRequestError):
        await service.patch_period(program_id, 0, ["not a day"])

    period = await service.patch_period(program_id, 0, [{"active": True, "title": f"D{i}"} for i in range(9)])

    assert period.end == TODAY + timedelta(days=8)
    assert [day["active"] for day in period.days[:7]] == [True, True, False, False, False, False, False]
    assert [day["active"] for day in period.days[7:]] == [True, True]
