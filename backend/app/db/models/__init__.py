"""ORM models exposed for metadata discovery."""
from app.db.models.message import Message
from app.db.models.program import Program
from app.db.models.program_period import ProgramPeriod
from app.db.models.user import User

__all__ = [
    "Message",
    "Program",
    "ProgramPeriod",
    "User",
]
