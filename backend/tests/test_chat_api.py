from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient

from app.db.models.message import Message
from app.db.models.program import Program
from app.db.models.user import User
from app.services.llm_client import LLMError
from app.services.program_dates import utc_today


def _human(session_factory):
    human_id = uuid4()
    with session_factory() as db:
        db.add(User(id=human_id, user_type="human"))
        db.commit()
    return human_id


def test_chat_returns_reply_and_meta(crest_app, session_factory, fake_llm) -> None:
    human_id = _human(session_factory)
    tomorrow = (utc_today() + timedelta(days=1)).isoformat()
    fake_llm.responses["importance"] = {"important": True, "agent_type": "Training", "reason": "new plan"}
    fake_llm.responses["intent"] = {
        "should_create": True,
        "confidence": 0.95,
        "agent_type": "Training",
        "parsed": {"start_date": tomorrow, "duration_weeks": 4, "days_per_week": 3},
        "action": "create",
    }

    with TestClient(crest_app) as client:
        response = client.post(
            f"/chat/{human_id}",
            json={"text": "Make me a 4-week training plan, 3 days a week starting tomorrow"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "Sounds good, let's keep going."
        assert data["meta"]["user_importance"] == {"important": True, "agent_type": "Training", "reason": "new plan"}
        assert data["meta"]["intent"]["parsed"]["start_date"] == tomorrow
        assert data["meta"]["program_action"] == {"action": "create", "agent": "Training"}
        assert response.headers.get("X-Request-Id")

    # background work is drained on shutdown
    with session_factory() as db:
        assert db.query(Message).count() == 2
        assert db.query(Message).filter(Message.is_important.is_(None)).count() == 0
        program = db.query(Program).one()
        assert program.status == "scheduled"
        assert program.end_date - program.start_date == timedelta(days=27)


def test_chat_rejects_blank_text(client, session_factory) -> None:
    human_id = _human(session_factory)

    response = client.post(f"/chat/{human_id}", json={"text": "   "})

    assert response.status_code == 400
    assert "text required" in response.json()["error"]


def test_chat_requires_known_human(client) -> None:
    response = client.post(f"/chat/{uuid4()}", json={"text": "hello"})

    assert response.status_code == 404
    assert response.json() == {"error": "humanId not found or not a human user"}


def test_chat_reply_failure_is_500(crest_app, session_factory, fake_llm) -> None:
    human_id = _human(session_factory)
    fake_llm.responses["reply"] = LLMError("reply call failed: timeout")

    with TestClient(crest_app, raise_server_exceptions=False) as client:
        response = client.post(f"/chat/{human_id}", json={"text": "hello"})

    assert response.status_code == 500
    assert response.json() == {"error": "reply call failed: timeout"}
