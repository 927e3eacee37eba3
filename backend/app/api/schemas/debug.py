"""Schemas for developer-only endpoints."""
from __future__ import annotations

from pydantic import BaseModel

from app.api.schemas.chat import ChatRequest, ImportancePayload


class ClassifyRequest(ChatRequest):
    pass


class ClassifyResponse(BaseModel):
    input: str
    result: ImportancePayload


class ResetResponse(BaseModel):
    ok: bool = True
    deleted: int
