"""Shared fixtures for unit tests.

Model objects are built in memory; nothing here touches the database.
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from ttrplobby.db.models import Game, LiveRoom, LiveRoomPlayer, User

CREATED = datetime(2025, 6, 1, 18, 0, tzinfo=UTC)


@pytest.fixture
def make_user() -> Callable[..., User]:
    """Factory for in-memory users."""

    def _make(user_id: int = 1, **overrides: Any) -> User:
        fields: dict[str, Any] = {
            "id": user_id,
            "email": f"player{user_id}@example.com",
            "hashed_password": "x",
            "is_active": True,
            "is_verified": True,
            "is_superuser": False,
            "username": f"Owlbear Bard {100 + user_id}",
            "display_name": None,
            "avatar_url": None,
            "created_at": CREATED,
            "updated_at": CREATED,
        }
        fields.update(overrides)
        return User(**fields)

    return _make


@pytest.fixture
def make_room(make_user: Callable[..., User]) -> Callable[..., LiveRoom]:
    """Factory for in-memory live rooms. The host holds the first seat."""

    def _make(host_id: int = 1, **overrides: Any) -> LiveRoom:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "host_id": host_id,
            "status": "open",
            "system": "D&D 5e (2014)",
            "length_minutes": 120,
            "max_players": 6,
            "new_player_friendly": True,
            "is_18_plus": False,
            "is_private": False,
            "created_at": CREATED,
            "updated_at": CREATED,
        }
        fields.update(overrides)
        room = LiveRoom(**fields)
        room.players = [
            LiveRoomPlayer(
                room_id=room.id,
                user_id=host_id,
                role="host",
                joined_at=CREATED,
                user=make_user(host_id),
            )
        ]
        return room

    return _make


@pytest.fixture
def make_game() -> Callable[..., Game]:
    """Factory for in-memory scheduled games."""

    def _make(host_id: int = 1, **overrides: Any) -> Game:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "host_id": host_id,
            "title": "Curse of Strahd one-shot",
            "system": "D&D 5e (2014)",
            "status": "open",
            "seats": 5,
            "welcomes_new": True,
            "is_mature": False,
            "time_zone": "America/New_York",
            "created_at": CREATED,
            "updated_at": CREATED,
        }
        fields.update(overrides)
        game = Game(**fields)
        game.players = []
        return game

    return _make
