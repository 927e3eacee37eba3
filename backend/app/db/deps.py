"""FastAPI dependencies for database access."""
from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from app.db.session import get_session_factory


def get_sessionmaker() -> sessionmaker[Session]:
    """Session factory used by the stores; tests override this dependency."""
    return get_session_factory()
