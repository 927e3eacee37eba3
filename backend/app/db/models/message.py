"""Chat message ORM model."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid

from app.db.base import Base
from app.db.types import utcnow


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_sender_receiver_created", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_agent_type", "agent_type"),
    )

    # Integer key doubles as the insertion-order tie breaker for equal created_at values.
    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_important = Column(Boolean, nullable=True)
    agent_type = Column(String(length=32), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
