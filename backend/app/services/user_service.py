"""App user rows: humans who chat and the single AI coach identity."""
from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import UserNotFoundError
from app.db.models.user import User


def get_or_create_user(db: Session, user_id: UUID, *, user_type: str = "human") -> User:
    """Return the user row, inserting it with ``user_type`` when missing.

    A concurrent insert of the same id is resolved by re-reading the row.
    """
    existing = db.get(User, user_id)
    if existing is not None:
        return existing

    db.add(User(id=user_id, user_type=user_type))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing is None:
            raise
        return existing
    return db.get(User, user_id)


def assert_human(db: Session, user_id: UUID) -> User:
    """Only existing human users may chat."""
    user = db.get(User, user_id)
    if user is None or user.user_type != "human":
        raise UserNotFoundError("humanId not found or not a human user")
    return user
