"""Database repositories."""

from ttrplobby.db.repositories.applications import ApplicationRepository
from ttrplobby.db.repositories.games import GameRepository
from ttrplobby.db.repositories.live_rooms import LiveRoomRepository
from ttrplobby.db.repositories.notifications import NotificationRepository
from ttrplobby.db.repositories.users import UserRepository

__all__ = [
    "ApplicationRepository",
    "GameRepository",
    "LiveRoomRepository",
    "NotificationRepository",
    "UserRepository",
]
