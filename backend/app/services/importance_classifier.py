"""Importance and topic classification for single chat messages."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Dict, List, Tuple

from app.core.config import settings
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.agents import CATCH_ALL_AGENT, normalize_agent_type
from app.services.llm_client import LLMClient, LLMError
from app.services.prompts import IMPORTANCE_PROMPT

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 2000
MAX_REASON_CHARS = 120
FALLBACK_REASON = "fallback"
FAILED_REASON = "classification failed"
RETRY_DELAY_SECONDS = 0.15


@dataclass
class ImportanceResult:
    important: bool
    agent_type: str
    reason: str

    def as_dict(self) -> dict:
        return asdict(self)


NEUTRAL_FALLBACK = ImportanceResult(important=False, agent_type=CATCH_ALL_AGENT, reason=FALLBACK_REASON)

PLAN_CHANGE_PATTERNS = [
    r"\b(change|switch|swap|modify|adjust|update|restart|reset)\b.*\b(plan|program|routine|schedule)\b",
    r"\bnew (plan|program|routine|schedule)\b",
    r"\bstart(ing)? over\b",
    r"\binstead of\b",
    r"\b(make|build|create|give) me a\b.*\b(plan|program|routine)\b",
]
CIRCUMSTANCE_PATTERNS = [
    r"\b(moved|moving|relocat\w*|new job|lost my job|travel\w*|pregnan\w*|baby)\b",
    r"\b(no longer|anymore|from now on)\b",
]
HEALTH_PATTERNS = [
    r"\b(injur\w*|sprain\w*|strain\w*|pain\w*|hurt\w*|broke|broken|fractur\w*|surgery|sick|ill|illness|fever)\b",
    r"\b(urgent|asap|emergency|doctor|physio\w*|medication\w*)\b",
]
DEADLINE_PATTERNS = [
    r"\b(deadline|due|race|competition|meet|wedding|marathon)\b",
    r"\bby (monday|tuesday|wednesday|thursday|friday|saturday|sunday|next week|tomorrow)\b",
    r"\bin \d+ (days|weeks|months)\b",
]
BLOCKER_PATTERNS = [
    r"\b(can't|cannot|can not|unable to|no time|too busy|missed|skipped|keep failing|struggl\w*|gave up)\b",
]

IMPORTANCE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        PLAN_CHANGE_PATTERNS
        + CIRCUMSTANCE_PATTERNS
        + HEALTH_PATTERNS
        + DEADLINE_PATTERNS
        + BLOCKER_PATTERNS
    )
]

# First match wins, so clinical terms outrank the general topics.
AGENT_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("Clinical", ["injur", "sprain", "strain", "pain", "hurt", "surgery", "sick", "illness", "fever", "doctor", "physio", "medication", "fractur"]),
    ("Training", ["workout", "training", "train ", "lift", "squat", "deadlift", "bench", "run", "running", "cardio", "gym", "sets", "reps", "exercise", "program"]),
    ("Nutrition", ["meal", "diet", "calorie", "macro", "protein", "carb", "eat", "food", "hydrat", "water", "snack"]),
    ("Sleep", ["sleep", "insomnia", "bedtime", "nap", "jet lag", "tired in the morning"]),
    ("Body", ["weight", "body fat", "measurement", "waist", "sore", "recovery", "mobility"]),
    ("Mind", ["stress", "anxious", "anxiety", "motivation", "mood", "overwhelm", "emotion", "calm"]),
    ("Cognition", ["focus", "attention", "memory", "brain fog", "concentrat", "clarity"]),
    ("Identity", ["values", "who i am", "identity", "purpose", "become the kind of", "long-term goal"]),
]


def heuristic_classify(text: str) -> ImportanceResult:
    """Deterministic keyword classification used when the model is unavailable."""
    lowered = (text or "")[:MAX_INPUT_CHARS].lower()
    important = any(pattern.search(lowered) for pattern in IMPORTANCE_PATTERNS)
    agent_type = CATCH_ALL_AGENT
    for agent, keywords in AGENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            agent_type = agent
            break
    return ImportanceResult(important=important, agent_type=agent_type, reason=FALLBACK_REASON)


def parse_importance(payload: Dict) -> ImportanceResult:
    reason = payload.get("reason")
    return ImportanceResult(
        important=bool(payload.get("important")),
        agent_type=normalize_agent_type(payload.get("agent_type")),
        reason=reason[:MAX_REASON_CHARS] if isinstance(reason, str) else "no reason given",
    )


class ImportanceClassifier:
    """Model-first classifier with a keyword fallback. ``classify`` never raises."""

    def __init__(self, llm: LLMClient, *, model: str | None = None) -> None:
        self.llm = llm
        self.model = model or settings.classifier_model

    async def classify(self, text: str) -> ImportanceResult:
        clipped = (text or "")[:MAX_INPUT_CHARS]
        with trace("importance.classify", metadata={"chars": len(clipped), "model": self.model}):
            try:
                payload = await self.llm.complete_json(
                    model=self.model,
                    system=IMPORTANCE_PROMPT,
                    user=clipped,
                    temperature=0,
                    label="importance",
                )
                return parse_importance(payload)
            except LLMError as exc:
                logger.warning("Importance classification failed, using heuristic: %s", exc)
                log_metric("importance.fallback", 1)

            try:
                return heuristic_classify(clipped)
            except Exception:  # pragma: no cover - keyword scan on a plain string
                logger.exception("Heuristic importance classification failed")
                return NEUTRAL_FALLBACK


async def classify_with_retry(
    classify: Callable[[str], Awaitable[ImportanceResult]],
    text: str,
    *,
    delay_seconds: float = RETRY_DELAY_SECONDS,
) -> ImportanceResult:
    """Call ``classify`` once more after a short pause, then settle on an unimportant result."""
    for attempt in (1, 2):
        try:
            return await classify(text)
        except Exception as exc:
            logger.warning("Classification attempt %s failed: %s", attempt, exc)
            if attempt == 1:
                await asyncio.sleep(delay_seconds)
    log_metric("importance.failed", 1)
    return ImportanceResult(important=False, agent_type=CATCH_ALL_AGENT, reason=FAILED_REASON)
