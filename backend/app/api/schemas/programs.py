"""Schemas for program API routes."""
from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.period_store import LoadedPeriod


class ProgramCreateRequest(BaseModel):
    user_id: UUID
    type: str = Field(..., min_length=1, max_length=64)
    start_date: Optional[date] = None
    period_length_weeks: Optional[int] = Field(default=None, ge=1, le=52)
    spec_json: Optional[Dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def strip_type(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("type is required")
        return cleaned


class ProgramChangeRequest(BaseModel):
    effective_date: date
    spec_patch: Optional[Dict[str, Any]] = None
    new_period_weeks: Optional[int] = Field(default=None, ge=1, le=52)


class ProgramExtendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_date: Optional[date] = Field(default=None, alias="from")
    weeks_hint: Optional[int] = Field(default=None, ge=1, le=52)
    required_days: Optional[int] = Field(default=None, ge=1, le=364)


class PeriodPatchRequest(BaseModel):
    days: List[Dict[str, Any]]


class ProgramOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    program_id: UUID
    user_id: UUID
    type: str
    status: Literal["scheduled", "active"]
    start_date: date
    end_date: date
    period_length_weeks: int
    spec_json: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class PeriodOut(BaseModel):
    period_index: int
    start_date: date
    end_date: date
    period_json: Dict[str, Any]

    @classmethod
    def from_loaded(cls, period: LoadedPeriod) -> "PeriodOut":
        return cls(
            period_index=period.period_index,
            start_date=period.start,
            end_date=period.end,
            period_json={"metadata": period.metadata, "days": period.days},
        )


class ProgramCreateResponse(BaseModel):
    program: ProgramOut
    period: PeriodOut
    reused: bool = False


class ProgramChangeResponse(BaseModel):
    ok: bool = True
    program_id: UUID
    effective_date: date
    spec_json: Dict[str, Any]
    period: PeriodOut


class AppendedPeriod(BaseModel):
    start_date: date
    end_date: date
    days: int
    period_index: int


class ProgramExtendResponse(BaseModel):
    ok: bool = True
    appended: AppendedPeriod
    program: ProgramOut


class PeriodPatchResponse(BaseModel):
    ok: bool = True
    program_id: UUID
    period_index: int
    days: int
    end_date: date


class DayPlan(BaseModel):
    date: dt.date
    plan: Optional[Dict[str, Any]] = None


class TodayResponse(BaseModel):
    program: ProgramOut
    today: DayPlan


class NeedsExtension(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_date: date = Field(alias="from")
    required_days: int
    hint: str


class WeekResponse(BaseModel):
    week_start: date
    days: List[DayPlan]
    needs_extension: Optional[NeedsExtension] = None


class WindowResponse(BaseModel):
    window_start: date
    days: int
    items: List[DayPlan]
