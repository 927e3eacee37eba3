"""Insights API route."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_insights_service
from app.api.schemas.insights import InsightsResponse
from app.services.insights_service import InsightsError, InsightsService

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/{human_id}", response_model=InsightsResponse)
async def get_insights_endpoint(
    human_id: UUID,
    service: InsightsService = Depends(get_insights_service),
) -> InsightsResponse:
    try:
        insights = await service.generate(human_id)
    except InsightsError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return InsightsResponse.model_validate(insights)
