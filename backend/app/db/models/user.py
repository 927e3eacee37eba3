"""User ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, Uuid, text as sa_text

from app.db.base import Base
from app.db.types import utcnow


class User(Base):
    __tablename__ = "app_users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    # "human" for app users, "ai" for the coach identity.
    user_type = Column(String(length=16), nullable=False, server_default=sa_text("'human'"))
    display_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
