"""Calendarized program day generation and reconciliation of model output."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.observability.metrics import log_metric
from app.observability.tracing import annotate, trace
from app.services.cadence import clamp_days_per_week
from app.services.llm_client import LLMClient, LLMError
from app.services.program_dates import add_days, utc_today, with_weekday_prefix
from app.services.prompts import UNIVERSAL_PROGRAM_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MAX_WEEKS = 52
MAX_NOTES_CHARS = 120
MAX_BLOCK_CHARS = 2000
DEFAULT_DAYS_PER_WEEK = 5
GENERATION_TEMPERATURE = 0.2

PROGRAM_DAYS_SCHEMA: Dict[str, Any] = {
    "name": "program_days",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "metadata": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "plan_type": {"type": "string"},
                    "cadence_days_per_week": {"type": "integer"},
                    "rationale": {"type": ["string", "null"]},
                },
                "required": ["plan_type", "cadence_days_per_week", "rationale"],
            },
            "days": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "active": {"type": "boolean"},
                        "title": {"type": ["string", "null"]},
                        "notes": {"type": "string"},
                        "intensity": {"type": ["string", "null"]},
                        "tags": {"type": ["array", "null"], "items": {"type": "string"}},
                        "blocks": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["active", "title", "notes", "intensity", "tags", "blocks"],
                },
            },
        },
        "required": ["metadata", "days"],
    },
}


@dataclass
class GenerationHints:
    days_per_week: Optional[int] = None
    modalities: Optional[List[str]] = None
    goals: Optional[List[str]] = None
    constraints: Optional[List[str]] = None


@dataclass
class GeneratedProgram:
    metadata: Dict[str, Any]
    days: List[Dict[str, Any]] = field(default_factory=list)

    def as_period_json(self) -> Dict[str, Any]:
        return {"metadata": dict(self.metadata), "days": list(self.days)}


def clamp_weeks(value: Any) -> int:
    try:
        weeks = int(value)
    except (TypeError, ValueError):
        weeks = 1
    return max(1, min(MAX_WEEKS, weeks))


def _block_text(block: Any) -> Optional[str]:
    if not isinstance(block, str):
        return None
    text = block.strip()
    return text[:MAX_BLOCK_CHARS] if text else None


def coerce_day(raw: Any) -> Dict[str, Any]:
    """Force one model day into the canonical shape."""
    day: Dict[str, Any] = dict(raw) if isinstance(raw, dict) else {}
    day.pop("kind", None)

    if not isinstance(day.get("active"), bool):
        day["active"] = True
    notes = day.get("notes")
    day["notes"] = notes[:MAX_NOTES_CHARS] if isinstance(notes, str) else ""

    blocks = day.get("blocks") if isinstance(day.get("blocks"), list) else []
    day["blocks"] = [text for text in (_block_text(block) for block in blocks) if text]

    tags = day.get("tags")
    day["tags"] = [tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else []

    if "intensity" in day and not isinstance(day["intensity"], (str, int, float)):
        day.pop("intensity")
    if "title" in day and not isinstance(day["title"], str):
        day.pop("title")
    return day


def assemble_days(
    raw_days: List[Any],
    *,
    target: int,
    start_date: date,
    start_offset: int = 0,
) -> List[Dict[str, Any]]:
    """Truncate, coerce and date-stamp days; shorter output is accepted as-is."""
    days: List[Dict[str, Any]] = []
    for index, raw in enumerate(raw_days[:target]):
        day = coerce_day(raw)
        day_date = add_days(start_date, index)
        day["date"] = day_date.isoformat()
        day["days_from_today"] = start_offset + index
        if day.get("title"):
            day["title"] = with_weekday_prefix(day["title"], day_date)
        days.append(day)
    return days


class DayGenerator:
    def __init__(self, llm: LLMClient, *, model: str | None = None) -> None:
        self.llm = llm
        self.model = model or settings.generator_model

    async def generate_days(
        self,
        plan_type: Optional[str],
        weeks: Any,
        request_text: str,
        hints: GenerationHints | None = None,
        *,
        start_date: date | None = None,
        days_from_today: int | None = None,
    ) -> GeneratedProgram:
        """Generate ``weeks * 7`` days starting at ``start_date``.

        ``days_from_today`` is the caller's offset of ``start_date`` from today;
        it is computed from the UTC calendar when omitted. Transport and parse
        failures return metadata with no days and are not retried.
        """
        hints = hints or GenerationHints()
        start = start_date or utc_today()
        total_days = clamp_weeks(weeks) * 7
        days_per_week = clamp_days_per_week(hints.days_per_week, DEFAULT_DAYS_PER_WEEK)
        offset = days_from_today if days_from_today is not None else (start - utc_today()).days

        metadata: Dict[str, Any] = {
            "plan_type": plan_type or "Training",
            "cadence_days_per_week": days_per_week,
            "start_date": start.isoformat(),
        }
        user_payload = {
            "request_text": request_text or "",
            "plan_type_hint": plan_type,
            "cadence_hint": {"days_per_week": days_per_week},
            "modalities": hints.modalities,
            "goals": hints.goals,
            "constraints": hints.constraints,
            "total_days": total_days,
            "metadata": {"start_date": start.isoformat()},
        }

        with trace(
            "generator.days",
            metadata={"model": self.model, "plan_type": plan_type, "total_days": total_days},
        ) as span:
            try:
                payload = await self.llm.complete_json(
                    model=self.model,
                    system=UNIVERSAL_PROGRAM_SYSTEM_PROMPT.format(total_days=total_days),
                    user=json.dumps(user_payload),
                    temperature=GENERATION_TEMPERATURE,
                    json_schema=PROGRAM_DAYS_SCHEMA,
                    label="generator",
                )
            except LLMError as exc:
                logger.warning("Day generation failed for %s: %s", plan_type, exc)
                log_metric("generator.failed", 1, {"plan_type": plan_type})
                return GeneratedProgram(metadata=metadata, days=[])

            model_meta = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
            if isinstance(model_meta.get("plan_type"), str) and model_meta["plan_type"].strip():
                metadata["plan_type"] = model_meta["plan_type"].strip()
            if isinstance(model_meta.get("cadence_days_per_week"), int) and not isinstance(
                model_meta.get("cadence_days_per_week"), bool
            ):
                metadata["cadence_days_per_week"] = clamp_days_per_week(model_meta["cadence_days_per_week"])
            if isinstance(model_meta.get("rationale"), str):
                metadata["rationale"] = model_meta["rationale"]

            raw_days = payload.get("days") if isinstance(payload.get("days"), list) else []
            days = assemble_days(raw_days, target=total_days, start_date=start, start_offset=offset)
            if len(raw_days) > total_days:
                log_metric("generator.truncated", len(raw_days) - total_days, {"plan_type": plan_type})
            annotate(span, returned=len(raw_days), kept=len(days))
            logger.info("Generated %s/%s days for %s", len(days), total_days, metadata["plan_type"])
            return GeneratedProgram(metadata=metadata, days=days)
