"""Chat API route."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_chat_orchestrator
from app.api.errors import to_http_error
from app.api.schemas.chat import ChatRequest, ChatResponse
from app.core.errors import CrestError
from app.observability.tracing import trace
from app.services.chat_orchestrator import ChatOrchestrator

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/{human_id}", response_model=ChatResponse)
async def chat_endpoint(
    human_id: UUID,
    payload: ChatRequest,
    http_request: Request,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> ChatResponse:
    """Store the message, reply with thread context, and queue any program work it asks for.

    Only the reply model failing is fatal here; the unhandled-error handler turns it into a 500.
    """
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "http.chat",
        metadata={"route": "/chat/{human_id}", "request_id": request_id},
        user_id=str(human_id),
        request_id=request_id,
    ):
        try:
            turn = await orchestrator.handle_message(human_id, payload.text)
        except CrestError as exc:
            raise to_http_error(exc) from exc
    return ChatResponse.model_validate({"reply": turn.reply, "meta": turn.meta})
