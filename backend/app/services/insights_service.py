"""Wellness insights summarized from the last month of conversation."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List
from uuid import UUID

from app.core.config import settings
from app.db.models.message import Message
from app.db.types import utcnow
from app.observability.tracing import trace
from app.services.conversation_store import ConversationStore
from app.services.llm_client import LLMClient, LLMError
from app.services.prompts import INSIGHTS_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30
OBSERVATION_KEYS = ("cognition", "identity", "mind", "clinical", "nutrition", "training", "body", "sleep")

ONBOARDING_INSIGHTS: Dict[str, Any] = {
    "observations": {
        "cognition": "Share your focus, memory, and mental clarity to optimize cognitive performance.",
        "identity": "Tell me about your personal goals and values to understand your identity and purpose.",
        "mind": "Discuss your mental health, stress levels, and emotional wellbeing patterns.",
        "clinical": "Share any health concerns, symptoms, or medical observations for clinical insights.",
        "nutrition": "Tell me about your meals and eating habits to get personalized nutrition insights.",
        "training": "Describe your exercise routines and physical activity to optimize your training.",
        "body": "Share how your body feels, energy levels, and physical sensations throughout the day.",
        "sleep": "Start tracking your sleep patterns by sharing how you feel each morning.",
    },
    "next_actions": [
        {
            "title": "Start Your Holistic Assessment",
            "text": "Begin by sharing your current sleep schedule, energy levels, and how you typically feel throughout the day.",
        },
        {
            "title": "Define Your Goals",
            "text": "Tell me about your health goals, values, and what areas of wellness you'd like to focus on improving.",
        },
    ],
    "reveal": (
        "Welcome to your wellness insights! I look at 8 areas of your wellbeing: Cognition, Identity, Mind, "
        "Clinical, Nutrition, Training, Body, and Sleep. The more you share, the more personal these become."
    ),
}


class InsightsError(Exception):
    """The model could not produce a usable insights payload."""


def transcript(rows: List[Message], human_id: UUID) -> str:
    lines = []
    for row in rows:
        speaker = "User" if row.sender_id == human_id else "Assistant"
        flag = " [IMPORTANT]" if row.is_important else ""
        lines.append(f"{speaker}{flag}: {row.content}")
    return "\n\n".join(lines)


def validate_insights(payload: Dict[str, Any]) -> Dict[str, Any]:
    observations = payload.get("observations")
    next_actions = payload.get("next_actions", payload.get("nextActions"))
    reveal = payload.get("reveal")
    if not isinstance(observations, dict) or not isinstance(next_actions, list) or not isinstance(reveal, str):
        raise InsightsError("Invalid insights response structure")
    return {
        "observations": {key: str(observations.get(key) or "") for key in OBSERVATION_KEYS},
        "next_actions": [
            {"title": str(action.get("title", "")), "text": str(action.get("text", ""))}
            for action in next_actions
            if isinstance(action, dict)
        ],
        "reveal": reveal,
    }


class InsightsService:
    def __init__(self, conversations: ConversationStore, llm: LLMClient, *, model: str | None = None) -> None:
        self.conversations = conversations
        self.llm = llm
        self.model = model or settings.insights_model

    async def generate(self, human_id: UUID) -> Dict[str, Any]:
        since = utcnow() - timedelta(days=LOOKBACK_DAYS)
        rows = await self.conversations.fetch_thread_since(human_id, since)
        if not rows:
            return ONBOARDING_INSIGHTS

        with trace("insights.generate", metadata={"messages": len(rows)}, user_id=str(human_id)):
            try:
                payload = await self.llm.complete_json(
                    model=self.model,
                    system=INSIGHTS_SYSTEM_PROMPT,
                    user=(
                        "Analyze this conversation history and generate personalized wellness insights:\n\n"
                        + transcript(rows, human_id)
                    ),
                    temperature=0.3,
                    max_tokens=800,
                    label="insights",
                )
            except LLMError as exc:
                logger.error("Insights generation failed for %s: %s", human_id, exc)
                raise InsightsError("Failed to generate insights") from exc
            return validate_insights(payload)
