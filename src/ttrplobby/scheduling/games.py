"""Scheduled game service.

Listings with a host, seats and a status. The host can edit, end or delete
a listing; players join directly or through the application workflow.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Game, GamePlayer
from ttrplobby.db.repositories.games import GameRepository

logger = logging.getLogger(__name__)

GAME_STATUSES = ("draft", "open", "full", "completed", "cancelled")
SORTS = ("soonest", "newest", "updated")

# Fields a host may change through update
EDITABLE_FIELDS = (
    "title",
    "system",
    "poster_url",
    "scheduled_at",
    "status",
    "seats",
    "length_min",
    "vibe",
    "description",
    "welcomes_new",
    "is_mature",
    "time_zone",
)

# Editable fields backed by NOT NULL columns
REQUIRED_FIELDS = ("title", "status", "seats", "welcomes_new", "is_mature")


@dataclass
class GameError:
    """Error result from a scheduled game operation."""

    code: str
    message: str


class GameService:
    """Scheduled game operations bound to one database session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.games = GameRepository(session)

    async def create(self, host_id: int, fields: dict[str, Any]) -> Game | GameError:
        """Create a listing and seat the host.

        Missing fields take the model defaults (title "Untitled game",
        status "open", 5 seats, welcomes new players, not mature).
        """
        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
        error = _validate(values)
        if error is not None:
            return error

        game = Game(host_id=host_id, **values)
        return await self.games.create(game)

    async def get(self, game_id: uuid.UUID) -> Game | GameError:
        game = await self.games.get_by_id(game_id)
        if game is None:
            return GameError(code="not_found", message="Game not found")
        return game

    async def search(
        self,
        q: str | None = None,
        system: str | None = None,
        status: str | None = "open",
        sort: str = "soonest",
    ) -> list[Game] | GameError:
        """Search listings. A status of "Any" disables the status filter."""
        if status is not None and status.lower() == "any":
            status = None
        if status is not None and status not in GAME_STATUSES:
            return GameError(code="invalid_status", message=f"Unknown status '{status}'")
        if sort not in SORTS:
            return GameError(code="invalid_sort", message=f"Unknown sort '{sort}'")
        return await self.games.search(q=q, system=system, status=status, sort=sort)

    async def update(
        self, game_id: uuid.UUID, host_id: int, fields: dict[str, Any]
    ) -> Game | GameError:
        """Update only the provided fields (host only)."""
        game = await self._owned(game_id, host_id)
        if isinstance(game, GameError):
            return game

        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        cleared = [k for k in REQUIRED_FIELDS if k in values and values[k] is None]
        if cleared:
            return GameError(code="invalid_field", message=f"'{cleared[0]}' cannot be null")
        error = _validate(values)
        if error is not None:
            return error
        if "title" in values and not values["title"]:
            return GameError(code="invalid_title", message="Title cannot be empty")

        return await self.games.update(game, values)

    async def delete(self, game_id: uuid.UUID, host_id: int) -> bool | GameError:
        game = await self._owned(game_id, host_id)
        if isinstance(game, GameError):
            return game
        await self.games.delete(game)
        return True

    async def end(self, game_id: uuid.UUID, host_id: int) -> Game | GameError:
        """Mark a game completed (host only)."""
        game = await self._owned(game_id, host_id)
        if isinstance(game, GameError):
            return game
        return await self.games.update(game, {"status": "completed"})

    async def join(self, game_id: uuid.UUID, user_id: int) -> Game | GameError:
        """Join a game directly. Idempotent for existing members."""
        game = await self.games.get_for_update(game_id)
        if game is None:
            return GameError(code="not_found", message="Game not found")
        if await self.games.is_member(game_id, user_id):
            return game
        if game.status not in ("open", "full"):
            return GameError(code="closed", message="This game is not accepting players")
        if await self.games.count_players(game_id) >= game.seats:
            return GameError(code="full", message="This game is full")

        await self.games.add_player(game_id, user_id)
        logger.info(f"User {user_id} joined game {game_id}")
        return await self.games.get_by_id(game_id)

    async def leave(self, game_id: uuid.UUID, user_id: int) -> bool | GameError:
        game = await self.games.get_by_id(game_id)
        if game is None:
            return GameError(code="not_found", message="Game not found")
        if game.host_id == user_id:
            return GameError(code="host_cannot_leave", message="Hosts cannot leave their own game")
        return await self.games.remove_player(game_id, user_id)

    async def roster(self, game_id: uuid.UUID) -> list[GamePlayer] | GameError:
        game = await self.games.get_by_id(game_id)
        if game is None:
            return GameError(code="not_found", message="Game not found")
        return await self.games.list_players(game_id)

    async def hosted_by(self, user_id: int) -> list[Game]:
        return await self.games.list_hosted(user_id)

    async def joined_by(self, user_id: int) -> list[Game]:
        return await self.games.list_joined(user_id)

    async def _owned(self, game_id: uuid.UUID, host_id: int) -> Game | GameError:
        game = await self.games.get_by_id(game_id)
        if game is None:
            return GameError(code="not_found", message="Game not found")
        if game.host_id != host_id:
            return GameError(code="forbidden", message="Only the host can change this game")
        return game


def _validate(values: dict[str, Any]) -> GameError | None:
    status = values.get("status")
    if status is not None and status not in GAME_STATUSES:
        return GameError(code="invalid_status", message=f"Unknown status '{status}'")
    seats = values.get("seats")
    if seats is not None and not 1 <= seats <= 20:
        return GameError(code="invalid_seats", message="Seats must be between 1 and 20")
    length = values.get("length_min")
    if length is not None and length <= 0:
        return GameError(code="invalid_length", message="Length must be positive")
    return None
