"""Program period ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid

from app.db.base import Base
from app.db.types import JSONBCompat, utcnow


class ProgramPeriod(Base):
    __tablename__ = "program_periods"
    __table_args__ = (UniqueConstraint("program_id", "period_index", name="uq_program_periods_program_index"),)

    program_period_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    program_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("programs.program_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_index = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    # {"metadata": {...}, "days": [...]}
    period_json = Column(JSONBCompat, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
