"""Program lifecycle: creation with debounce, changes, extensions, manual edits and calendar views."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.core.config import settings
from app.core.errors import GenerationError, InvalidRequestError, PeriodConflictError, PeriodNotFoundError
from app.db.models.program import Program
from app.db.types import utcnow
from app.observability.metrics import log_metric
from app.observability.tracing import annotate, trace
from app.services.agents import agent_to_program_type, normalize_agent_type
from app.services.cadence import clamp_days_per_week, enforce_cadence, enforce_days_per_week, weekday_offsets
from app.services.day_generator import DayGenerator, GenerationHints, clamp_weeks
from app.services.intent_detector import IntentResult
from app.services.period_store import LoadedPeriod, PeriodStore, last_end_date, resolve_day
from app.services.program_dates import add_days, normalize_weekdays, try_parse_iso_date, utc_today

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_WEEKS = 4
WEEK_DAYS = 7
MAX_WINDOW_DAYS = 60


@dataclass
class ProgramResult:
    program: Program
    period: LoadedPeriod
    reused: bool = False


@dataclass
class ChangeResult:
    program: Program
    period: LoadedPeriod
    effective_date: date
    spec_json: Dict[str, Any] = field(default_factory=dict)


def _list_or(value: Any, default: Any) -> Any:
    return value if isinstance(value, list) else default


def canonical_spec(spec_json: Optional[Dict[str, Any]], *, source: str = "api") -> Dict[str, Any]:
    """Fill a free-form program spec with defaults."""
    spec = spec_json or {}
    training_days = spec.get("training_days")
    try:
        spec_version = int(spec.get("spec_version", 1))
    except (TypeError, ValueError):
        spec_version = 1
    return {
        "source": spec.get("source") or source,
        "raw_request": spec.get("raw_request") or "",
        "agent": normalize_agent_type(spec.get("agent") or "Training"),
        "modalities": _list_or(spec.get("modalities"), ["General"]),
        "days_per_week": clamp_days_per_week(spec.get("days_per_week"), 5),
        "training_days": normalize_weekdays(training_days) if isinstance(training_days, list) else None,
        "constraints": _list_or(spec.get("constraints"), []),
        "goals": _list_or(spec.get("goals"), []),
        "spec_version": spec_version,
    }


def merge_spec(current: Optional[Dict[str, Any]], patch: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Apply a spec patch and bump the version."""
    base = canonical_spec(current)
    patch = patch or {}
    merged = {**base, **patch}
    merged["days_per_week"] = (
        clamp_days_per_week(patch["days_per_week"]) if patch.get("days_per_week") is not None else base["days_per_week"]
    )
    merged["modalities"] = _list_or(patch.get("modalities"), base["modalities"])
    merged["training_days"] = (
        normalize_weekdays(patch["training_days"])
        if isinstance(patch.get("training_days"), list)
        else base["training_days"]
    )
    merged["goals"] = _list_or(patch.get("goals"), base["goals"])
    merged["constraints"] = _list_or(patch.get("constraints"), base["constraints"])
    merged["agent"] = normalize_agent_type(merged.get("agent"))
    merged["spec_version"] = base["spec_version"] + 1
    return merged


def hints_from_spec(spec: Dict[str, Any]) -> GenerationHints:
    return GenerationHints(
        days_per_week=spec.get("days_per_week"),
        modalities=spec.get("modalities"),
        goals=spec.get("goals"),
        constraints=spec.get("constraints"),
    )


class ProgramService:
    def __init__(
        self,
        store: PeriodStore,
        generator: DayGenerator,
        *,
        debounce_seconds: int | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.debounce_seconds = settings.program_debounce_seconds if debounce_seconds is None else debounce_seconds

    async def _generate(
        self,
        spec: Dict[str, Any],
        *,
        weeks: int,
        start: date,
        today: date,
        request_text: str,
    ):
        generated = await self.generator.generate_days(
            spec["agent"],
            weeks,
            request_text,
            hints_from_spec(spec),
            start_date=start,
            days_from_today=(start - today).days,
        )
        if not generated.days:
            log_metric("program.generation.empty", 1, {"agent": spec["agent"]})
            raise GenerationError()
        return generated

    # create -------------------------------------------------------------

    async def create_program(
        self,
        *,
        user_id: UUID,
        program_type: str,
        start_date: date | None = None,
        period_length_weeks: int | None = None,
        spec_json: Optional[Dict[str, Any]] = None,
        today: date | None = None,
        source: str = "api",
    ) -> ProgramResult:
        """Create a program and its first period, reusing a same-type program created moments ago."""
        today = today or utc_today()
        start = start_date or today

        with trace(
            "program.create",
            metadata={"program_type": program_type, "start_date": start.isoformat()},
            user_id=str(user_id),
        ) as span:
            since = utcnow() - timedelta(seconds=self.debounce_seconds)
            existing = await self.store.find_recent_program(user_id, program_type, since)
            if existing is not None:
                periods = await self.store.load_periods(existing.program_id)
                if periods:
                    logger.info("Reusing program %s created within debounce window", existing.program_id)
                    log_metric("program.create.debounced", 1, {"program_type": program_type})
                    annotate(span, reused=True, program_id=str(existing.program_id))
                    return ProgramResult(program=existing, period=periods[0], reused=True)

            spec = canonical_spec(spec_json, source=source)
            weeks = clamp_weeks(period_length_weeks or DEFAULT_PERIOD_WEEKS)
            generated = await self._generate(
                spec,
                weeks=weeks,
                start=start,
                today=today,
                request_text=spec["raw_request"],
            )
            days = enforce_days_per_week(generated.days, start, spec["days_per_week"], spec["training_days"])

            program, period = await self.store.create_program(
                user_id=user_id,
                program_type=program_type,
                status="active" if start <= today else "scheduled",
                start_date=start,
                period_length_weeks=max(1, math.ceil(len(days) / WEEK_DAYS)),
                spec_json=spec,
                period_json={"metadata": generated.metadata, "days": days},
            )
            annotate(span, reused=False, program_id=str(program.program_id), days=len(days))
            log_metric("program.created", 1, {"program_type": program_type, "source": spec["source"]})
            return ProgramResult(program=program, period=period)

    async def create_from_intent(
        self,
        user_id: UUID,
        agent: str,
        intent: IntentResult,
        text: str,
        *,
        today: date | None = None,
    ) -> ProgramResult:
        parsed = intent.parsed
        today = today or utc_today()
        spec_json = {
            "source": "chat",
            "raw_request": text,
            "agent": agent,
            "modalities": parsed.modalities,
            "days_per_week": parsed.days_per_week,
            "training_days": parsed.training_days,
        }
        return await self.create_program(
            user_id=user_id,
            program_type=agent_to_program_type(agent),
            start_date=try_parse_iso_date(parsed.start_date) or today,
            period_length_weeks=parsed.duration_weeks or DEFAULT_PERIOD_WEEKS,
            spec_json=spec_json,
            today=today,
            source="chat",
        )

    # change -------------------------------------------------------------

    async def change_program(
        self,
        program_id: UUID,
        *,
        effective_date: date,
        spec_patch: Optional[Dict[str, Any]] = None,
        new_period_weeks: int | None = None,
        today: date | None = None,
    ) -> ChangeResult:
        """Regenerate everything from ``effective_date`` on under a patched spec."""
        today = today or utc_today()
        program = await self.store.get_program(program_id)
        periods = await self.store.load_periods(program_id)
        current_end = last_end_date(periods)
        if current_end is not None and effective_date > add_days(current_end, 1):
            raise PeriodConflictError(
                f"effective_date {effective_date.isoformat()} leaves a gap after {current_end.isoformat()}"
            )

        merged = merge_spec(program.spec_json, spec_patch)
        with trace(
            "program.change",
            metadata={"program_id": str(program_id), "effective_date": effective_date.isoformat()},
        ) as span:
            generated = await self._generate(
                merged,
                weeks=clamp_weeks(new_period_weeks or DEFAULT_PERIOD_WEEKS),
                start=effective_date,
                today=today,
                request_text=merged.get("raw_request") or "Apply program changes effective this date.",
            )
            days = enforce_days_per_week(generated.days, effective_date, merged["days_per_week"], merged["training_days"])
            period = await self.store.apply_change(program_id, effective_date, days, generated.metadata)
            program = await self.store.update_program(program_id, spec_json=merged)
            annotate(span, period_index=period.period_index, days=len(days))
            log_metric("program.changed", 1, {"program_type": program.type})
            return ChangeResult(program=program, period=period, effective_date=effective_date, spec_json=merged)

    async def change_request_from_intent(
        self,
        user_id: UUID,
        agent: str,
        intent: IntentResult,
        text: str,
        *,
        today: date | None = None,
    ) -> Optional[tuple[UUID, Dict[str, Any]]]:
        """Target program and change body for a chat-detected change, if the user has one."""
        today = today or utc_today()
        program = await self.store.find_latest_program(user_id, agent_to_program_type(agent))
        if program is None:
            logger.info("No %s program for user %s; ignoring change request", agent, user_id)
            return None
        parsed = intent.parsed
        spec_patch: Dict[str, Any] = {"raw_request": text}
        if parsed.days_per_week is not None:
            spec_patch["days_per_week"] = parsed.days_per_week
        if parsed.modalities:
            spec_patch["modalities"] = parsed.modalities
        if parsed.training_days:
            spec_patch["training_days"] = parsed.training_days
        effective = try_parse_iso_date(parsed.start_date) or today
        return program.program_id, {
            "effective_date": effective.isoformat(),
            "spec_patch": spec_patch,
            "new_period_weeks": parsed.duration_weeks,
        }

    async def change_from_intent(
        self,
        user_id: UUID,
        agent: str,
        intent: IntentResult,
        text: str,
        *,
        today: date | None = None,
    ) -> Optional[ChangeResult]:
        """Apply a chat-detected change to the user's latest program of that agent."""
        request = await self.change_request_from_intent(user_id, agent, intent, text, today=today)
        if request is None:
            return None
        program_id, body = request
        return await self.change_program(
            program_id,
            effective_date=date.fromisoformat(body["effective_date"]),
            spec_patch=body["spec_patch"],
            new_period_weeks=body["new_period_weeks"],
            today=today,
        )

    # extend -------------------------------------------------------------

    async def extend_program(
        self,
        program_id: UUID,
        *,
        from_date: date | None = None,
        weeks_hint: int | None = None,
        required_days: int | None = None,
        today: date | None = None,
    ) -> ProgramResult:
        """Append a freshly generated period right after the current last day."""
        today = today or utc_today()
        program = await self.store.get_program(program_id)
        periods = await self.store.load_periods(program_id)
        current_end = last_end_date(periods)
        expected = add_days(current_end, 1) if current_end else program.start_date
        start = from_date or expected
        if start != expected:
            raise PeriodConflictError(
                f"from ({start.isoformat()}) must be the day after the last end_date "
                f"({add_days(expected, -1).isoformat()})"
            )

        target_days = max(1, required_days) if required_days else max(1, weeks_hint or DEFAULT_PERIOD_WEEKS) * WEEK_DAYS
        spec = canonical_spec(program.spec_json)
        with trace("program.extend", metadata={"program_id": str(program_id), "target_days": target_days}):
            generated = await self._generate(
                spec,
                weeks=math.ceil(target_days / WEEK_DAYS),
                start=start,
                today=today,
                request_text=spec["raw_request"] or "Extend program horizon.",
            )
            days = enforce_days_per_week(
                generated.days[:target_days], start, spec["days_per_week"], spec["training_days"]
            )
            period = await self.store.append_period(program_id, start, days, generated.metadata)
            program = await self.store.get_program(program_id)
            log_metric("program.extended", len(days), {"program_type": program.type})
            return ProgramResult(program=program, period=period)

    # manual edit --------------------------------------------------------

    async def patch_period(self, program_id: UUID, period_index: int, days: List[Any]) -> LoadedPeriod:
        """Replace a period's days; excess active days per week are turned off."""
        if not days:
            raise InvalidRequestError("days must not be empty")
        if not all(isinstance(day, dict) for day in days):
            raise InvalidRequestError("every entry in days must be an object")
        program = await self.store.get_program(program_id)
        period = await self.store.get_period(program_id, period_index)
        spec = canonical_spec(program.spec_json)
        offsets = weekday_offsets(period.start, spec["training_days"])
        normalized = enforce_cadence(days, spec["days_per_week"], offsets)
        return await self.store.replace_period_days(program_id, period_index, normalized)

    # views --------------------------------------------------------------

    async def get_program(self, program_id: UUID) -> Program:
        return await self.store.get_program(program_id)

    async def today_view(self, program_id: UUID, *, today: date | None = None) -> Dict[str, Any]:
        today = today or utc_today()
        program = await self.store.get_program(program_id)
        if program.status == "scheduled" and program.start_date <= today <= program.end_date:
            program = await self.store.update_program(program_id, status="active")
            logger.info("Program %s activated", program_id)
        periods = await self.store.load_periods(program_id)
        plan = resolve_day(periods, today)
        if plan is None:
            raise PeriodNotFoundError("No plan found for today")
        return {"program": program, "today": {"date": today.isoformat(), "plan": plan}}

    async def week_view(self, program_id: UUID, start: date | None = None) -> Dict[str, Any]:
        """Seven days from ``start`` plus an extension hint when the horizon runs out."""
        start = start or utc_today()
        await self.store.get_program(program_id)
        periods = await self.store.load_periods(program_id)
        horizon = last_end_date(periods)

        days: List[Dict[str, Any]] = []
        missing_from: Optional[date] = None
        for offset in range(WEEK_DAYS):
            current = add_days(start, offset)
            in_range = horizon is None or current <= horizon
            plan = resolve_day(periods, current) if in_range else None
            days.append({"date": current.isoformat(), "plan": plan})
            if plan is None and missing_from is None:
                missing_from = current

        payload: Dict[str, Any] = {"week_start": start.isoformat(), "days": days}
        if missing_from is not None:
            payload["needs_extension"] = {
                "from": missing_from.isoformat(),
                "required_days": WEEK_DAYS - (missing_from - start).days,
                "hint": f"POST /programs/{program_id}/extend with {{from, weeks_hint}}",
            }
        return payload

    async def window_view(self, program_id: UUID, start: date | None = None, days: int = WEEK_DAYS) -> Dict[str, Any]:
        start = start or utc_today()
        count = max(1, min(MAX_WINDOW_DAYS, days))
        await self.store.get_program(program_id)
        periods = await self.store.load_periods(program_id)
        items = []
        for offset in range(count):
            current = add_days(start, offset)
            items.append({"date": current.isoformat(), "plan": resolve_day(periods, current)})
        return {"window_start": start.isoformat(), "days": count, "items": items}
