"""Developer-only routes for poking at the classifier and resetting threads."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_conversation_store, get_importance_classifier
from app.api.schemas.debug import ClassifyRequest, ClassifyResponse, ResetResponse
from app.core.config import settings
from app.services.conversation_store import ConversationStore
from app.services.importance_classifier import ImportanceClassifier

router = APIRouter(prefix="/debug", tags=["debug"])


def require_debug() -> None:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


@router.post("/classify", response_model=ClassifyResponse)
async def classify_endpoint(
    payload: ClassifyRequest,
    classifier: ImportanceClassifier = Depends(get_importance_classifier),
) -> ClassifyResponse:
    """Run the importance classifier on arbitrary text without storing anything."""
    result = await classifier.classify(payload.text)
    return ClassifyResponse.model_validate({"input": payload.text, "result": result.as_dict()})


@router.delete("/messages/{human_id}", response_model=ResetResponse, dependencies=[Depends(require_debug)])
async def reset_thread_endpoint(
    human_id: UUID,
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ResetResponse:
    deleted = await conversations.delete_thread(human_id)
    return ResetResponse(deleted=deleted)
