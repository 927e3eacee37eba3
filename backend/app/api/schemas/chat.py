"""Schemas for the chat endpoint."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ChatRequest(BaseModel):
    text: str = Field(..., max_length=8000)

    @field_validator("text")
    @classmethod
    def require_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("text required")
        return cleaned


class ImportancePayload(BaseModel):
    important: bool
    agent_type: str
    reason: str


class IntentParsedPayload(BaseModel):
    start_date: Optional[str] = None
    duration_weeks: Optional[int] = None
    days_per_week: Optional[int] = None
    modalities: Optional[List[str]] = None
    training_days: Optional[List[str]] = None


class IntentPayload(BaseModel):
    should_create: bool
    confidence: float
    agent: str
    parsed: IntentParsedPayload
    action: Literal["create", "change", "none"]


class ProgramActionPayload(BaseModel):
    action: Literal["create", "change", "none"]
    agent: str


class ChatMeta(BaseModel):
    user_importance: ImportancePayload
    intent: IntentPayload
    program_action: ProgramActionPayload


class ChatResponse(BaseModel):
    reply: str
    meta: ChatMeta
