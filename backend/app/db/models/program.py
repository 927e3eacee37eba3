"""Program ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Uuid, text as sa_text

from app.db.base import Base
from app.db.types import JSONBCompat, utcnow


class Program(Base):
    __tablename__ = "programs"
    __table_args__ = (Index("ix_programs_user_type_created", "user_id", "type", "created_at"),)

    program_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False)
    # agent key + version, e.g. "training.v1"
    type = Column(String(length=64), nullable=False)
    status = Column(String(length=16), nullable=False, server_default=sa_text("'scheduled'"))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    period_length_weeks = Column(Integer, nullable=False, default=4)
    spec_json = Column(JSONBCompat, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
