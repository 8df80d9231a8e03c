"""Database layer."""

from ttrplobby.db.models import Base
from ttrplobby.db.session import async_session_factory, get_db_session

__all__ = [
    "Base",
    "async_session_factory",
    "get_db_session",
]
