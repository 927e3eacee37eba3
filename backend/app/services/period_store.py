"""Program and program-period persistence with date-bounded period splicing.

A program's periods tile one contiguous, non-overlapping date range. Every
mutation here runs in a single session/transaction and leaves that invariant
intact; the program row's start/end dates are kept in step with the periods.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import PeriodConflictError, PeriodNotFoundError, ProgramNotFoundError
from app.db.models.program import Program
from app.db.models.program_period import ProgramPeriod
from app.db.types import utcnow
from app.services.program_dates import add_days, days_between, size_dates_from_days, split_at
from app.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)


@dataclass
class LoadedPeriod:
    period_index: int
    start: date
    end: date
    days: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


def period_days(period_json: Any) -> List[Dict[str, Any]]:
    """Days from period_json; older rows stored the bare list."""
    if isinstance(period_json, dict) and isinstance(period_json.get("days"), list):
        return list(period_json["days"])
    if isinstance(period_json, list):
        return list(period_json)
    return []


def period_metadata(period_json: Any) -> Dict[str, Any]:
    if isinstance(period_json, dict) and isinstance(period_json.get("metadata"), dict):
        return dict(period_json["metadata"])
    return {}


def to_loaded(row: ProgramPeriod) -> LoadedPeriod:
    return LoadedPeriod(
        period_index=row.period_index,
        start=row.start_date,
        end=row.end_date,
        days=period_days(row.period_json),
        metadata=period_metadata(row.period_json),
    )


def resolve_day(periods: Sequence[LoadedPeriod], target: date) -> Optional[Dict[str, Any]]:
    """Day scheduled on ``target`` or None when no period covers it."""
    for period in periods:
        if period.start <= target <= period.end:
            offset = days_between(period.start, target)
            if 0 <= offset < len(period.days):
                return period.days[offset]
            return None
    return None


def last_end_date(periods: Sequence[LoadedPeriod]) -> Optional[date]:
    return max((period.end for period in periods), default=None)


class PeriodStore:
    """Synchronous SQLAlchemy access exposed as coroutines via ``asyncio.to_thread``."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    # programs -----------------------------------------------------------

    async def get_program(self, program_id: UUID) -> Program:
        return await asyncio.to_thread(self._get_program, program_id)

    def _get_program(self, program_id: UUID) -> Program:
        with self.session_factory() as session:
            program = session.get(Program, program_id)
            if program is None:
                raise ProgramNotFoundError()
            return program

    async def find_recent_program(self, user_id: UUID, program_type: str, since: datetime) -> Optional[Program]:
        """Newest scheduled/active program of this type created at or after ``since``."""
        return await asyncio.to_thread(self._find_recent_program, user_id, program_type, since)

    def _find_recent_program(self, user_id: UUID, program_type: str, since: datetime) -> Optional[Program]:
        with self.session_factory() as session:
            stmt = (
                select(Program)
                .where(
                    Program.user_id == user_id,
                    Program.type == program_type,
                    Program.status.in_(("scheduled", "active")),
                    Program.created_at >= since,
                )
                .order_by(Program.created_at.desc())
                .limit(1)
            )
            return session.execute(stmt).scalars().first()

    async def find_latest_program(self, user_id: UUID, program_type: str) -> Optional[Program]:
        return await asyncio.to_thread(self._find_latest_program, user_id, program_type)

    def _find_latest_program(self, user_id: UUID, program_type: str) -> Optional[Program]:
        with self.session_factory() as session:
            stmt = (
                select(Program)
                .where(
                    Program.user_id == user_id,
                    Program.type == program_type,
                    Program.status.in_(("scheduled", "active")),
                )
                .order_by(Program.created_at.desc())
                .limit(1)
            )
            return session.execute(stmt).scalars().first()

    async def create_program(
        self,
        *,
        user_id: UUID,
        program_type: str,
        status: str,
        start_date: date,
        period_length_weeks: int,
        spec_json: Dict[str, Any],
        period_json: Dict[str, Any],
    ) -> tuple[Program, LoadedPeriod]:
        """Insert the program and its period 0 together."""
        return await asyncio.to_thread(
            self._create_program,
            user_id,
            program_type,
            status,
            start_date,
            period_length_weeks,
            spec_json,
            period_json,
        )

    def _create_program(
        self,
        user_id: UUID,
        program_type: str,
        status: str,
        start_date: date,
        period_length_weeks: int,
        spec_json: Dict[str, Any],
        period_json: Dict[str, Any],
    ) -> tuple[Program, LoadedPeriod]:
        _, end_date = size_dates_from_days(start_date, len(period_days(period_json)))
        with self.session_factory() as session:
            get_or_create_user(session, user_id)
            program = Program(
                user_id=user_id,
                type=program_type,
                status=status,
                start_date=start_date,
                end_date=end_date,
                period_length_weeks=period_length_weeks,
                spec_json=spec_json,
            )
            session.add(program)
            session.flush()
            period = ProgramPeriod(
                program_id=program.program_id,
                period_index=0,
                start_date=start_date,
                end_date=end_date,
                period_json=period_json,
            )
            session.add(period)
            session.commit()
            return program, to_loaded(period)

    async def update_program(self, program_id: UUID, **values: Any) -> Program:
        return await asyncio.to_thread(self._update_program, program_id, values)

    def _update_program(self, program_id: UUID, values: Dict[str, Any]) -> Program:
        with self.session_factory() as session:
            program = session.get(Program, program_id)
            if program is None:
                raise ProgramNotFoundError()
            for key, value in values.items():
                setattr(program, key, value)
            program.updated_at = utcnow()
            session.commit()
            return program

    # periods ------------------------------------------------------------

    async def load_periods(self, program_id: UUID) -> List[LoadedPeriod]:
        return await asyncio.to_thread(self._load_periods, program_id)

    def _load_periods(self, program_id: UUID) -> List[LoadedPeriod]:
        with self.session_factory() as session:
            return [to_loaded(row) for row in self._period_rows(session, program_id)]

    async def apply_change(
        self,
        program_id: UUID,
        effective_date: date,
        new_days: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LoadedPeriod:
        """Replace everything from ``effective_date`` on with ``new_days``."""
        return await asyncio.to_thread(self._apply_change, program_id, effective_date, new_days, metadata or {})

    def _apply_change(
        self,
        program_id: UUID,
        effective_date: date,
        new_days: List[Dict[str, Any]],
        metadata: Dict[str, Any],
    ) -> LoadedPeriod:
        with self.session_factory() as session:
            program = session.get(Program, program_id)
            if program is None:
                raise ProgramNotFoundError()
            rows = self._period_rows(session, program_id)
            if rows:
                current_end = max(row.end_date for row in rows)
                if effective_date > add_days(current_end, 1):
                    raise PeriodConflictError(
                        f"effective_date {effective_date.isoformat()} leaves a gap after {current_end.isoformat()}"
                    )
            next_index = max((row.period_index for row in rows), default=-1) + 1

            for row in rows:
                if row.start_date > effective_date:
                    session.delete(row)
                elif row.end_date >= effective_date:
                    new_end, kept = split_at(row.start_date, period_days(row.period_json), effective_date)
                    if not kept:
                        session.delete(row)
                        continue
                    row.end_date = new_end
                    row.period_json = {"metadata": period_metadata(row.period_json), "days": kept}
                    row.updated_at = utcnow()
            session.flush()

            _, end_date = size_dates_from_days(effective_date, len(new_days))
            period = ProgramPeriod(
                program_id=program_id,
                period_index=next_index,
                start_date=effective_date,
                end_date=end_date,
                period_json={"metadata": metadata, "days": new_days},
            )
            session.add(period)
            session.flush()
            self._sync_program_bounds(session, program)
            session.commit()
            logger.info(
                "Applied change to program %s from %s as period %s",
                program_id,
                effective_date.isoformat(),
                next_index,
            )
            return to_loaded(period)

    async def append_period(
        self,
        program_id: UUID,
        start_date: date,
        days: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LoadedPeriod:
        """Add a period directly after the current last day."""
        return await asyncio.to_thread(self._append_period, program_id, start_date, days, metadata or {})

    def _append_period(
        self,
        program_id: UUID,
        start_date: date,
        days: List[Dict[str, Any]],
        metadata: Dict[str, Any],
    ) -> LoadedPeriod:
        with self.session_factory() as session:
            program = session.get(Program, program_id)
            if program is None:
                raise ProgramNotFoundError()
            rows = self._period_rows(session, program_id)
            if rows:
                expected = add_days(max(row.end_date for row in rows), 1)
                if start_date != expected:
                    raise PeriodConflictError(
                        f"from ({start_date.isoformat()}) must be the day after the last end_date "
                        f"({add_days(expected, -1).isoformat()})"
                    )
            next_index = max((row.period_index for row in rows), default=-1) + 1
            _, end_date = size_dates_from_days(start_date, len(days))
            period = ProgramPeriod(
                program_id=program_id,
                period_index=next_index,
                start_date=start_date,
                end_date=end_date,
                period_json={"metadata": metadata, "days": days},
            )
            session.add(period)
            session.flush()
            self._sync_program_bounds(session, program)
            session.commit()
            return to_loaded(period)

    async def get_period(self, program_id: UUID, period_index: int) -> LoadedPeriod:
        return await asyncio.to_thread(self._get_period, program_id, period_index)

    def _get_period(self, program_id: UUID, period_index: int) -> LoadedPeriod:
        with self.session_factory() as session:
            row = self._period_row(session, program_id, period_index)
            return to_loaded(row)

    async def replace_period_days(
        self,
        program_id: UUID,
        period_index: int,
        days: List[Dict[str, Any]],
    ) -> LoadedPeriod:
        """Swap a period's days and resize its end date to match."""
        return await asyncio.to_thread(self._replace_period_days, program_id, period_index, days)

    def _replace_period_days(
        self,
        program_id: UUID,
        period_index: int,
        days: List[Dict[str, Any]],
    ) -> LoadedPeriod:
        with self.session_factory() as session:
            row = self._period_row(session, program_id, period_index)
            _, new_end = size_dates_from_days(row.start_date, len(days))
            following = session.execute(
                select(ProgramPeriod)
                .where(ProgramPeriod.program_id == program_id, ProgramPeriod.start_date > row.start_date)
                .order_by(ProgramPeriod.start_date)
                .limit(1)
            ).scalars().first()
            if following is not None and new_end + timedelta(days=1) != following.start_date:
                raise PeriodConflictError(
                    f"period {period_index} must keep {days_between(row.start_date, following.start_date)} days "
                    f"to stay contiguous with period {following.period_index}"
                )
            row.end_date = new_end
            row.period_json = {"metadata": period_metadata(row.period_json), "days": days}
            row.updated_at = utcnow()
            session.flush()
            program = session.get(Program, program_id)
            if program is not None:
                self._sync_program_bounds(session, program)
            session.commit()
            return to_loaded(row)

    # helpers ------------------------------------------------------------

    @staticmethod
    def _period_rows(session: Session, program_id: UUID) -> List[ProgramPeriod]:
        stmt = (
            select(ProgramPeriod)
            .where(ProgramPeriod.program_id == program_id)
            .order_by(ProgramPeriod.period_index.asc())
        )
        return list(session.execute(stmt).scalars())

    @staticmethod
    def _period_row(session: Session, program_id: UUID, period_index: int) -> ProgramPeriod:
        stmt = select(ProgramPeriod).where(
            ProgramPeriod.program_id == program_id,
            ProgramPeriod.period_index == period_index,
        )
        row = session.execute(stmt).scalars().first()
        if row is None:
            raise PeriodNotFoundError()
        return row

    def _sync_program_bounds(self, session: Session, program: Program) -> None:
        rows = self._period_rows(session, program.program_id)
        if not rows:
            return
        program.start_date = min(row.start_date for row in rows)
        program.end_date = max(row.end_date for row in rows)
        program.updated_at = utcnow()
