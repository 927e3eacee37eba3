"""Detects program create/change requests in a single chat message."""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from app.core.config import settings
from app.observability.metrics import log_metric
from app.observability.tracing import annotate, trace
from app.services.agents import CATCH_ALL_AGENT, normalize_agent_type
from app.services.llm_client import LLMClient, LLMError
from app.services.program_dates import add_days, normalize_weekdays, try_parse_iso_date, utc_today
from app.services.prompts import PROGRAM_INTENT_PROMPT

logger = logging.getLogger(__name__)

IntentAction = Literal["create", "change", "none"]

MAX_INPUT_CHARS = 2000


@dataclass
class IntentParsed:
    start_date: Optional[str] = None
    duration_weeks: Optional[int] = None
    days_per_week: Optional[int] = None
    modalities: Optional[List[str]] = None
    training_days: Optional[List[str]] = None


@dataclass
class IntentResult:
    should_create: bool = False
    confidence: float = 0.0
    agent: str = CATCH_ALL_AGENT
    parsed: IntentParsed = field(default_factory=IntentParsed)
    action: IntentAction = "none"

    def as_dict(self) -> dict:
        return asdict(self)


def no_intent() -> IntentResult:
    return IntentResult()


def _clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


def _clamp_int(value: Any, low: int, high: int) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return max(low, min(high, int(round(number))))


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items or None


def parse_intent_payload(payload: Dict[str, Any]) -> IntentResult:
    """Validate a model payload; anything malformed degrades field by field."""
    raw_parsed = payload.get("parsed") if isinstance(payload.get("parsed"), dict) else {}
    start = try_parse_iso_date(raw_parsed.get("start_date"))
    parsed = IntentParsed(
        start_date=start.isoformat() if start else None,
        duration_weeks=_clamp_int(raw_parsed.get("duration_weeks"), 1, 52),
        days_per_week=_clamp_int(raw_parsed.get("days_per_week"), 1, 7),
        modalities=_string_list(raw_parsed.get("modalities")),
        training_days=normalize_weekdays(_string_list(raw_parsed.get("training_days"))) or None,
    )

    should_create = payload.get("should_create") is True
    reported_action = payload.get("action")
    if reported_action == "change":
        action: IntentAction = "change"
    elif should_create:
        action = "create"
    else:
        action = "none"

    return IntentResult(
        should_create=should_create,
        confidence=_clamp_confidence(payload.get("confidence")),
        agent=normalize_agent_type(payload.get("agent_type", payload.get("agent"))),
        parsed=parsed,
        action=action,
    )


class IntentDetector:
    def __init__(self, llm: LLMClient, *, model: str | None = None) -> None:
        self.llm = llm
        self.model = model or settings.intent_model

    async def detect_intent(self, text: str, reference_date: date | None = None) -> IntentResult:
        """Return the program intent for ``text``; never raises on model failure."""
        today = reference_date or utc_today()
        system = PROGRAM_INTENT_PROMPT.format(
            today=today.isoformat(),
            tomorrow=add_days(today, 1).isoformat(),
        )
        with trace("intent.detect", metadata={"model": self.model, "today": today.isoformat()}) as span:
            try:
                payload = await self.llm.complete_json(
                    model=self.model,
                    system=system,
                    user=(text or "")[:MAX_INPUT_CHARS],
                    temperature=0,
                    label="intent",
                )
            except LLMError as exc:
                logger.warning("Intent detection failed, treating as no intent: %s", exc)
                log_metric("intent.failed", 1)
                return no_intent()

            result = parse_intent_payload(payload)
            annotate(span, action=result.action, agent=result.agent, confidence=result.confidence)
            return result
