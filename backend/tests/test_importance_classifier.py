from __future__ import annotations

import pytest

from app.services.importance_classifier import (
    ImportanceClassifier,
    ImportanceResult,
    classify_with_retry,
    heuristic_classify,
    parse_importance,
)
from app.services.llm_client import LLMError

from conftest import FakeLLM


def test_sprained_ankle_is_important_and_clinical() -> None:
    result = heuristic_classify("I sprained my ankle yesterday")

    assert result.important is True
    assert result.agent_type == "Clinical"
    assert result.reason == "fallback"


def test_small_talk_is_not_important() -> None:
    result = heuristic_classify("thanks, have a nice evening")

    assert result == ImportanceResult(important=False, agent_type="other", reason="fallback")


def test_plan_change_is_important() -> None:
    result = heuristic_classify("Can we switch my program to three gym days?")

    assert result.important is True
    assert result.agent_type == "Training"


def test_parse_importance_normalizes_agent_labels() -> None:
    result = parse_importance({"important": 1, "agent_type": "sleep", "reason": "r" * 300})

    assert result.important is True
    assert result.agent_type == "Sleep"
    assert len(result.reason) == 120

    assert parse_importance({"agent_type": "Astrology"}).agent_type == "other"


@pytest.mark.asyncio
async def test_classify_uses_model_output() -> None:
    llm = FakeLLM({"importance": {"important": True, "agent_type": "Clinical", "reason": "injury"}})

    result = await ImportanceClassifier(llm).classify("I sprained my ankle yesterday")

    assert result.as_dict() == {"important": True, "agent_type": "Clinical", "reason": "injury"}
    assert llm.calls[0]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_classify_falls_back_to_keywords_when_model_fails() -> None:
    llm = FakeLLM({"importance": LLMError("timeout")})

    result = await ImportanceClassifier(llm).classify("I sprained my ankle yesterday")

    assert result.important is True
    assert result.agent_type == "Clinical"
    assert result.reason == "fallback"


@pytest.mark.asyncio
async def test_classify_clips_long_input() -> None:
    llm = FakeLLM({"importance": {"important": False, "agent_type": "other", "reason": "long"}})

    await ImportanceClassifier(llm).classify("a" * 5000)

    assert len(llm.calls[0]["messages"][-1]["content"]) == 2000


@pytest.mark.asyncio
async def test_retry_succeeds_on_second_attempt() -> None:
    attempts = []

    async def flaky(text: str) -> ImportanceResult:
        attempts.append(text)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        return ImportanceResult(important=True, agent_type="Mind", reason="stress")

    result = await classify_with_retry(flaky, "so stressed", delay_seconds=0)

    assert len(attempts) == 2
    assert result.agent_type == "Mind"


@pytest.mark.asyncio
async def test_retry_settles_on_unimportant_after_two_failures() -> None:
    async def broken(text: str) -> ImportanceResult:
        raise RuntimeError("boom")

    result = await classify_with_retry(broken, "anything", delay_seconds=0)

    assert result == ImportanceResult(important=False, agent_type="other", reason="classification failed")
