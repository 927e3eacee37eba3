"""Program API routes."""
from __future__ import annotations

from datetime import date
from time import perf_counter
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import get_program_service
from app.api.errors import to_http_error
from app.api.schemas.programs import (
    AppendedPeriod,
    PeriodOut,
    PeriodPatchRequest,
    PeriodPatchResponse,
    ProgramChangeRequest,
    ProgramChangeResponse,
    ProgramCreateRequest,
    ProgramCreateResponse,
    ProgramExtendRequest,
    ProgramExtendResponse,
    ProgramOut,
    TodayResponse,
    WeekResponse,
    WindowResponse,
)
from app.core.errors import CrestError
from app.observability.metrics import elapsed_ms, log_metric
from app.observability.tracing import trace
from app.services.program_service import ProgramService

router = APIRouter(prefix="/programs", tags=["programs"])


@router.post("", response_model=ProgramCreateResponse)
async def create_program_endpoint(
    payload: ProgramCreateRequest,
    http_request: Request,
    service: ProgramService = Depends(get_program_service),
) -> ProgramCreateResponse:
    """Generate a program and its first period; duplicates inside the debounce window are reused."""
    request_id = getattr(http_request.state, "request_id", None)
    base_metadata: Dict[str, Any] = {
        "route": "/programs",
        "program_type": payload.type,
        "period_length_weeks": payload.period_length_weeks,
        "request_id": request_id,
    }
    start = perf_counter()
    success = False
    try:
        with trace("programs.create", metadata=base_metadata, user_id=str(payload.user_id), request_id=request_id):
            result = await service.create_program(
                user_id=payload.user_id,
                program_type=payload.type,
                start_date=payload.start_date,
                period_length_weeks=payload.period_length_weeks,
                spec_json=payload.spec_json,
            )
            success = True
    except CrestError as exc:
        raise to_http_error(exc) from exc
    finally:
        log_metric("programs.create.latency_ms", elapsed_ms(start), metadata={"program_type": payload.type})
        log_metric("programs.create.success", 1 if success else 0, metadata={"program_type": payload.type})

    return ProgramCreateResponse(
        program=ProgramOut.model_validate(result.program),
        period=PeriodOut.from_loaded(result.period),
        reused=result.reused,
    )


@router.get("/{program_id}", response_model=ProgramOut)
async def get_program_endpoint(
    program_id: UUID,
    service: ProgramService = Depends(get_program_service),
) -> ProgramOut:
    try:
        program = await service.get_program(program_id)
    except CrestError as exc:
        raise to_http_error(exc) from exc
    return ProgramOut.model_validate(program)


@router.get("/{program_id}/today", response_model=TodayResponse)
async def get_today_endpoint(
    program_id: UUID,
    service: ProgramService = Depends(get_program_service),
) -> TodayResponse:
    """What is scheduled today; activates a scheduled program once its start date arrives."""
    try:
        view = await service.today_view(program_id)
    except CrestError as exc:
        raise to_http_error(exc) from exc
    return TodayResponse(program=ProgramOut.model_validate(view["program"]), today=view["today"])


@router.get("/{program_id}/week", response_model=WeekResponse, response_model_exclude_unset=True)
async def get_week_endpoint(
    program_id: UUID,
    start: Optional[date] = Query(default=None),
    service: ProgramService = Depends(get_program_service),
) -> WeekResponse:
    try:
        view = await service.week_view(program_id, start)
    except CrestError as exc:
        raise to_http_error(exc) from exc
    return WeekResponse.model_validate(view)


@router.get("/{program_id}/window", response_model=WindowResponse)
async def get_window_endpoint(
    program_id: UUID,
    start: Optional[date] = Query(default=None),
    days: int = Query(default=7),
    service: ProgramService = Depends(get_program_service),
) -> WindowResponse:
    """Any 1-60 day range; ``days`` outside that range is clamped."""
    try:
        view = await service.window_view(program_id, start, days)
    except CrestError as exc:
        raise to_http_error(exc) from exc
    return WindowResponse.model_validate(view)


@router.post("/{program_id}/change", response_model=ProgramChangeResponse)
async def change_program_endpoint(
    program_id: UUID,
    payload: ProgramChangeRequest,
    http_request: Request,
    service: ProgramService = Depends(get_program_service),
) -> ProgramChangeResponse:
    """Trim the program at ``effective_date`` and regenerate everything after it."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "route": f"/programs/{program_id}/change",
        "effective_date": payload.effective_date.isoformat(),
        "request_id": request_id,
    }
    try:
        with trace("programs.change", metadata=metadata, request_id=request_id):
            result = await service.change_program(
                program_id,
                effective_date=payload.effective_date,
                spec_patch=payload.spec_patch,
                new_period_weeks=payload.new_period_weeks,
            )
    except CrestError as exc:
        raise to_http_error(exc) from exc

    return ProgramChangeResponse(
        program_id=program_id,
        effective_date=result.effective_date,
        spec_json=result.spec_json,
        period=PeriodOut.from_loaded(result.period),
    )


@router.post("/{program_id}/extend", response_model=ProgramExtendResponse)
async def extend_program_endpoint(
    program_id: UUID,
    payload: Optional[ProgramExtendRequest] = None,
    service: ProgramService = Depends(get_program_service),
) -> ProgramExtendResponse:
    params = payload or ProgramExtendRequest()
    try:
        result = await service.extend_program(
            program_id,
            from_date=params.from_date,
            weeks_hint=params.weeks_hint,
            required_days=params.required_days,
        )
    except CrestError as exc:
        raise to_http_error(exc) from exc

    period = result.period
    return ProgramExtendResponse(
        appended=AppendedPeriod(
            start_date=period.start,
            end_date=period.end,
            days=len(period.days),
            period_index=period.period_index,
        ),
        program=ProgramOut.model_validate(result.program),
    )


@router.patch("/{program_id}/periods/{period_index}", response_model=PeriodPatchResponse)
async def patch_period_endpoint(
    program_id: UUID,
    period_index: int,
    payload: PeriodPatchRequest,
    service: ProgramService = Depends(get_program_service),
) -> PeriodPatchResponse:
    """Replace a period's days by hand; its end date follows the new length."""
    try:
        period = await service.patch_period(program_id, period_index, payload.days)
    except CrestError as exc:
        raise to_http_error(exc) from exc
    return PeriodPatchResponse(
        program_id=program_id,
        period_index=period.period_index,
        days=len(period.days),
        end_date=period.end,
    )
