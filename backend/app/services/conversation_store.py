"""Message persistence and the context queries used to build model prompts."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.models.message import Message
from app.db.types import as_utc, utcnow
from app.services.agents import CATCH_ALL_AGENT
from app.services.user_service import assert_human, get_or_create_user

logger = logging.getLogger(__name__)

RECENT_LIMIT = 12
BOOSTER_LOOKBACK_DAYS = 90
BOOSTER_QUERY_LIMIT = 10
BOOSTER_LIMIT = 3
TOPIC_QUERY_LIMIT = 8
TOPIC_KEEP = 4

ChatMessage = Dict[str, str]


@dataclass
class BaseContext:
    rows: List[Message] = field(default_factory=list)
    ids: Set[int] = field(default_factory=set)
    oldest_ts: datetime = field(default_factory=utcnow)
    messages: List[ChatMessage] = field(default_factory=list)


class ConversationStore:
    """Thread between one human and the configured AI coach user."""

    def __init__(self, session_factory: sessionmaker[Session], ai_user_id: UUID) -> None:
        self.session_factory = session_factory
        self.ai_user_id = ai_user_id

    def _thread(self, human_id: UUID):
        return or_(
            and_(Message.sender_id == human_id, Message.receiver_id == self.ai_user_id),
            and_(Message.sender_id == self.ai_user_id, Message.receiver_id == human_id),
        )

    def to_chat_messages(self, rows: List[Message], human_id: UUID) -> List[ChatMessage]:
        return [
            {"role": "user" if row.sender_id == human_id else "assistant", "content": row.content or ""}
            for row in rows
        ]

    # users --------------------------------------------------------------

    async def assert_human(self, human_id: UUID) -> None:
        await asyncio.to_thread(self._assert_human, human_id)

    def _assert_human(self, human_id: UUID) -> None:
        with self.session_factory() as session:
            assert_human(session, human_id)

    async def ensure_ai_user(self) -> None:
        await asyncio.to_thread(self._ensure_ai_user)

    def _ensure_ai_user(self) -> None:
        with self.session_factory() as session:
            get_or_create_user(session, self.ai_user_id, user_type="ai")
            session.commit()

    # writes -------------------------------------------------------------

    async def insert_message(self, sender_id: UUID, receiver_id: UUID, content: str) -> Message:
        return await asyncio.to_thread(self._insert_message, sender_id, receiver_id, content)

    def _insert_message(self, sender_id: UUID, receiver_id: UUID, content: str) -> Message:
        with self.session_factory() as session:
            message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content)
            session.add(message)
            session.commit()
            return message

    async def patch_classification(self, message_id: int, *, important: bool, agent_type: str) -> None:
        await asyncio.to_thread(self._patch_classification, message_id, important, agent_type)

    def _patch_classification(self, message_id: int, important: bool, agent_type: str) -> None:
        with self.session_factory() as session:
            message = session.get(Message, message_id)
            if message is None:
                logger.warning("Message %s vanished before classification patch", message_id)
                return
            message.is_important = important
            message.agent_type = agent_type
            session.commit()

    async def delete_thread(self, human_id: UUID) -> int:
        """Dev reset: remove every message between the human and the coach."""
        return await asyncio.to_thread(self._delete_thread, human_id)

    def _delete_thread(self, human_id: UUID) -> int:
        with self.session_factory() as session:
            result = session.execute(delete(Message).where(self._thread(human_id)))
            session.commit()
            return result.rowcount or 0

    # reads --------------------------------------------------------------

    async def fetch_base_context(self, human_id: UUID) -> BaseContext:
        return await asyncio.to_thread(self._fetch_base_context, human_id)

    def _fetch_base_context(self, human_id: UUID) -> BaseContext:
        """Recent turns plus a few important older turns from the lookback window."""
        with self.session_factory() as session:
            recent = list(
                session.execute(
                    select(Message)
                    .where(self._thread(human_id))
                    .order_by(Message.created_at.desc(), Message.id.desc())
                    .limit(RECENT_LIMIT)
                ).scalars()
            )
            recent.reverse()
            ids = {row.id for row in recent}
            oldest_ts = as_utc(recent[0].created_at) if recent else utcnow()

            since = utcnow() - timedelta(days=BOOSTER_LOOKBACK_DAYS)
            candidates = list(
                session.execute(
                    select(Message)
                    .where(
                        self._thread(human_id),
                        Message.is_important.is_(True),
                        Message.created_at < oldest_ts,
                        Message.created_at >= since,
                    )
                    .order_by(Message.created_at.desc(), Message.id.desc())
                    .limit(BOOSTER_QUERY_LIMIT)
                ).scalars()
            )

        boosters: List[Message] = []
        for row in candidates:
            if row.id not in ids:
                boosters.append(row)
            if len(boosters) >= BOOSTER_LIMIT:
                break
        boosters.reverse()
        ids.update(row.id for row in boosters)

        rows = boosters + recent
        return BaseContext(
            rows=rows,
            ids=ids,
            oldest_ts=oldest_ts,
            messages=self.to_chat_messages(rows, human_id),
        )

    async def fetch_topic_slice(
        self,
        human_id: UUID,
        agent_type: Optional[str],
        oldest_ts: datetime,
        block_ids: Set[int],
    ) -> List[ChatMessage]:
        if not agent_type or agent_type == CATCH_ALL_AGENT:
            return []
        return await asyncio.to_thread(self._fetch_topic_slice, human_id, agent_type, oldest_ts, block_ids)

    def _fetch_topic_slice(
        self,
        human_id: UUID,
        agent_type: str,
        oldest_ts: datetime,
        block_ids: Set[int],
    ) -> List[ChatMessage]:
        """Older same-topic turns preceding the base context, oldest first."""
        with self.session_factory() as session:
            rows = list(
                session.execute(
                    select(Message)
                    .where(
                        self._thread(human_id),
                        Message.agent_type == agent_type,
                        Message.created_at < oldest_ts,
                    )
                    .order_by(Message.created_at.desc(), Message.id.desc())
                    .limit(TOPIC_QUERY_LIMIT)
                ).scalars()
            )
        rows = [row for row in rows if row.id not in block_ids]
        rows.sort(key=lambda row: (row.created_at, row.id))
        return self.to_chat_messages(rows[-TOPIC_KEEP:], human_id)

    async def fetch_thread_since(self, human_id: UUID, since: datetime) -> List[Message]:
        return await asyncio.to_thread(self._fetch_thread_since, human_id, since)

    def _fetch_thread_since(self, human_id: UUID, since: datetime) -> List[Message]:
        with self.session_factory() as session:
            return list(
                session.execute(
                    select(Message)
                    .where(self._thread(human_id), Message.created_at >= since)
                    .order_by(Message.created_at.asc(), Message.id.asc())
                ).scalars()
            )
