from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from app.db.models.message import Message
from app.db.models.program import Program
from app.db.models.user import User
from app.services.background import BackgroundTaskRunner
from app.services.chat_orchestrator import (
    ChatOrchestrator,
    build_system_prompt,
    decide_program_action,
    looks_like_program_ask,
    resolve_program_agent,
)
from app.services.conversation_store import ConversationStore
from app.services.day_generator import DayGenerator
from app.services.importance_classifier import ImportanceClassifier
from app.services.intent_detector import IntentDetector, IntentResult
from app.services.llm_client import LLMError
from app.services.period_store import PeriodStore
from app.services.program_service import ProgramService
from app.services.prompts import OUT_OF_SCOPE_GUIDE, TRAINING_PROGRAM_GUIDE

from conftest import FakeLLM, generated_days

TODAY = date(2025, 1, 10)
AI_ID = uuid4()

CREATE_INTENT = {
    "should_create": True,
    "confidence": 0.9,
    "agent_type": "Training",
    "parsed": {"start_date": "2025-01-11", "duration_weeks": 2, "days_per_week": 3},
    "action": "create",
}


def _orchestrator(session_factory, llm: FakeLLM, runner: BackgroundTaskRunner) -> ChatOrchestrator:
    conversations = ConversationStore(session_factory, AI_ID)
    return ChatOrchestrator(
        conversations=conversations,
        classifier=ImportanceClassifier(llm),
        intent_detector=IntentDetector(llm),
        programs=ProgramService(PeriodStore(session_factory), DayGenerator(llm)),
        llm=llm,
        runner=runner,
        change_callback_url="",
    )


def _human(session_factory):
    human_id = uuid4()
    with session_factory() as db:
        db.add(User(id=human_id, user_type="human"))
        db.commit()
    return human_id


def test_program_ask_detection() -> None:
    assert looks_like_program_ask("Can you write me a 6 week split?")
    assert looks_like_program_ask("what should I do in week 2")
    assert not looks_like_program_ask("I slept badly")


def test_agent_resolution_prefers_intent_then_classifier() -> None:
    assert resolve_program_agent("Nutrition", "Training") == "Nutrition"
    assert resolve_program_agent("other", "Sleep") == "Sleep"
    assert resolve_program_agent(None, "other") == "other"


def test_program_action_gates() -> None:
    intent = IntentResult(should_create=True, confidence=0.6, agent="Training", action="create")

    assert decide_program_action(intent, "Training", 0.6) == "create"
    assert decide_program_action(intent, "other", 0.6) == "none"
    intent.confidence = 0.59
    assert decide_program_action(intent, "Training", 0.6) == "none"


def test_system_prompt_sections() -> None:
    training = build_system_prompt("hi", "Training", "Training")
    assert TRAINING_PROGRAM_GUIDE in training
    assert OUT_OF_SCOPE_GUIDE not in training

    off_topic = build_system_prompt("what's the capital of France?", "other", "other")
    assert OUT_OF_SCOPE_GUIDE in off_topic
    assert TRAINING_PROGRAM_GUIDE not in off_topic

    assert TRAINING_PROGRAM_GUIDE in build_system_prompt("new routine?", "Sleep", "Sleep")


@pytest.mark.asyncio
async def test_chat_turn_creates_program_in_background(session_factory) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM(
        {
            "importance": {"important": True, "agent_type": "Training", "reason": "plan request"},
            "intent": CREATE_INTENT,
            "generator": generated_days,
            "reply": "  On it!  ",
        }
    )
    runner = BackgroundTaskRunner()

    turn = await _orchestrator(session_factory, llm, runner).handle_message(
        human_id, "Make me a 2-week plan, 3 days a week starting tomorrow", today=TODAY
    )
    await runner.drain()

    assert turn.reply == "On it!"
    assert turn.meta["program_action"] == {"action": "create", "agent": "Training"}
    assert turn.meta["user_importance"]["agent_type"] == "Training"
    assert turn.meta["intent"]["parsed"]["days_per_week"] == 3
    reply_call = next(call for call in llm.calls if call["label"] == "reply")
    assert TRAINING_PROGRAM_GUIDE in reply_call["messages"][0]["content"]
    assert reply_call["messages"][-1]["content"].startswith("Make me a 2-week plan")

    with session_factory() as db:
        messages = db.query(Message).order_by(Message.id).all()
        assert [m.content for m in messages] == ["Make me a 2-week plan, 3 days a week starting tomorrow", "On it!"]
        assert all(m.agent_type == "Training" and m.is_important for m in messages)
        program = db.query(Program).one()
        assert program.type == "training.v1"
        assert program.start_date == date(2025, 1, 11)
        assert program.spec_json["source"] == "chat"


@pytest.mark.asyncio
async def test_reply_survives_upstream_failures(session_factory) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM({"importance": LLMError("down"), "intent": LLMError("down"), "reply": "Still here."})
    runner = BackgroundTaskRunner()

    turn = await _orchestrator(session_factory, llm, runner).handle_message(human_id, "thanks!", today=TODAY)
    await runner.drain()

    assert turn.reply == "Still here."
    assert turn.meta["user_importance"]["reason"] == "fallback"
    assert turn.meta["intent"]["action"] == "none"
    assert turn.meta["program_action"]["action"] == "none"
    assert "generator" not in llm.labels()


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback_text(session_factory) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM({"importance": LLMError("down"), "intent": LLMError("down"), "reply": ""})
    runner = BackgroundTaskRunner()

    turn = await _orchestrator(session_factory, llm, runner).handle_message(human_id, "hm", today=TODAY)
    await runner.drain()

    assert turn.reply == "Sorry, I had trouble replying."


@pytest.mark.asyncio
async def test_reply_failure_is_raised(session_factory) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM({"importance": LLMError("down"), "intent": LLMError("down"), "reply": LLMError("reply down")})
    runner = BackgroundTaskRunner()

    with pytest.raises(LLMError):
        await _orchestrator(session_factory, llm, runner).handle_message(human_id, "hello", today=TODAY)
    await runner.drain()


@pytest.mark.asyncio
async def test_failed_program_creation_does_not_touch_reply(session_factory) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM(
        {
            "importance": {"important": True, "agent_type": "Training", "reason": "plan"},
            "intent": CREATE_INTENT,
            "generator": "broken",
            "reply": "Working on it.",
        }
    )
    runner = BackgroundTaskRunner()

    turn = await _orchestrator(session_factory, llm, runner).handle_message(human_id, "new plan", today=TODAY)
    await runner.drain()

    assert turn.reply == "Working on it."
    with session_factory() as db:
        assert db.query(Program).count() == 0


@pytest.mark.asyncio
async def test_change_is_posted_to_callback_when_configured(session_factory, monkeypatch) -> None:
    human_id = _human(session_factory)
    llm = FakeLLM({"generator": generated_days})
    service = ProgramService(PeriodStore(session_factory), DayGenerator(llm))
    created = await service.create_program(user_id=human_id, program_type="training.v1", today=TODAY)

    posted = []

    class _Response:
        def raise_for_status(self) -> None:
            return None

    class _Client:
        def __init__(self, *args, **kwargs) -> None:
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc) -> None:
            return None

        async def post(self, url, json):
            posted.append((url, json))
            return _Response()

    monkeypatch.setattr("app.services.chat_orchestrator.httpx.AsyncClient", _Client)
    llm.responses.update(
        {
            "importance": {"important": True, "agent_type": "Training", "reason": "change"},
            "intent": {**CREATE_INTENT, "should_create": False, "action": "change"},
            "reply": "Updated.",
        }
    )
    runner = BackgroundTaskRunner()
    orchestrator = _orchestrator(session_factory, llm, runner)
    orchestrator.change_callback_url = "http://crest.internal/"

    turn = await orchestrator.handle_message(human_id, "switch my plan to 3 days", today=TODAY)
    await runner.drain()

    assert turn.meta["program_action"]["action"] == "change"
    assert posted == [
        (
            f"http://crest.internal/programs/{created.program.program_id}/change",
            {
                "effective_date": "2025-01-11",
                "spec_patch": {"raw_request": "switch my plan to 3 days", "days_per_week": 3},
                "new_period_weeks": 2,
            },
        )
    ]
