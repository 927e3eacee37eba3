from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_background_runner, get_llm_client
from app.db import models  # noqa: F401  ensure models are loaded
from app.db.base import Base
from app.db.deps import get_sessionmaker
from app.services.llm_client import LLMClient, LLMError


class FakeLLM(LLMClient):
    """Canned model responses keyed by call label.

    A response may be a string (returned verbatim), a dict (returned as JSON),
    an exception instance (raised) or a callable taking the messages.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(None)
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[Dict[str, Any]] = []

    @property
    def available(self) -> bool:
        return True

    def labels(self) -> List[str]:
        return [call["label"] for call in self.calls]

    async def complete_text(
        self,
        *,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: Dict[str, Any] | None = None,
        label: str = "chat",
    ) -> str:
        self.calls.append(
            {"label": label, "model": model, "messages": messages, "response_format": response_format}
        )
        response = self.responses.get(label)
        if callable(response):
            response = response(messages)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise LLMError(f"no canned response for {label}")
        return response if isinstance(response, str) else json.dumps(response)


def generated_days(messages: List[Dict[str, str]]) -> Dict[str, Any]:
    """Generator responder: one content day per requested day."""
    payload = json.loads(messages[-1]["content"])
    total = payload["total_days"]
    return {
        "metadata": {"plan_type": "Training", "cadence_days_per_week": 5},
        "days": [
            {
                "active": True,
                "title": f"Session {index + 1}",
                "notes": "Keep it easy.",
                "intensity": "moderate",
                "tags": ["strength"],
                "blocks": [f"Warm-up {index + 1}", "Main set"],
            }
            for index in range(total)
        ],
    }


NOT_IMPORTANT = {"important": False, "agent_type": "other", "reason": "small talk"}
NO_INTENT = {"should_create": False, "confidence": 0.1, "agent": "other", "parsed": {}, "action": "none"}


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM(
        {
            "importance": NOT_IMPORTANT,
            "intent": NO_INTENT,
            "generator": generated_days,
            "reply": "Sounds good, let's keep going.",
        }
    )


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'crest.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture()
def crest_app(session_factory, fake_llm):
    """The app wired to the test database and fake model; background tasks drain on client exit."""
    from app.main import app

    get_background_runner.cache_clear()
    app.dependency_overrides[get_sessionmaker] = lambda: session_factory
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    yield app
    app.dependency_overrides.clear()
    get_background_runner.cache_clear()


@pytest.fixture()
def client(crest_app):
    with TestClient(crest_app) as test_client:
        yield test_client
