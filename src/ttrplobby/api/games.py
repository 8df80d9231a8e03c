"""Scheduled game API endpoints."""

import logging
import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ttrplobby.api.dependencies import get_game_service
from ttrplobby.api.errors import raise_for_error
from ttrplobby.auth.dependencies import get_required_user_with_dev_bypass
from ttrplobby.db.models import Game, GamePlayer, User
from ttrplobby.live.serializers import serialize_user
from ttrplobby.scheduling.games import GameError, GameService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])

CurrentUser = Annotated[User, Depends(get_required_user_with_dev_bypass)]
Service = Annotated[GameService, Depends(get_game_service)]


class GameFields(BaseModel):
    """Editable fields of a scheduled game. Omitted fields are left alone."""

    title: str | None = Field(default=None, max_length=200)
    system: str | None = Field(default=None, max_length=80)
    poster_url: str | None = None
    scheduled_at: datetime | None = None
    status: str | None = None
    seats: int | None = None
    length_min: int | None = None
    vibe: str | None = Field(default=None, max_length=200)
    description: str | None = None
    welcomes_new: bool | None = None
    is_mature: bool | None = None
    time_zone: str | None = Field(default=None, max_length=64)


def serialize_game(game: Game) -> dict[str, Any]:
    """Serialize a scheduled game with its player count."""
    return {
        "id": str(game.id),
        "host_id": game.host_id,
        "title": game.title,
        "system": game.system,
        "poster_url": game.poster_url,
        "scheduled_at": game.scheduled_at.isoformat() if game.scheduled_at else None,
        "status": game.status,
        "seats": game.seats,
        "length_min": game.length_min,
        "vibe": game.vibe,
        "description": game.description,
        "welcomes_new": game.welcomes_new,
        "is_mature": game.is_mature,
        "time_zone": game.time_zone,
        "created_at": game.created_at.isoformat(),
        "updated_at": game.updated_at.isoformat(),
        "players_count": len(game.players),
    }


def serialize_member(member: GamePlayer) -> dict[str, Any]:
    return {**serialize_user(member.user), "role": member.role}


@router.post("")
async def create_game(request: GameFields, user: CurrentUser, service: Service) -> dict[str, Any]:
    """Create a scheduled game. The caller becomes its host."""
    result = await service.create(user.id, request.model_dump(exclude_unset=True))
    if isinstance(result, GameError):
        raise_for_error(result)
    logger.info(f"Game {result.id} created via API by user {user.id}")
    return {"game": serialize_game(result)}


@router.get("")
async def search_games(
    service: Service,
    q: str | None = None,
    system: str | None = None,
    status: str = "open",
    sort: Annotated[str, Query(pattern="^(soonest|newest|updated)$")] = "soonest",
) -> dict[str, Any]:
    """Search game listings. Pass status=Any to include every status."""
    result = await service.search(q=q, system=system, status=status, sort=sort)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"games": [serialize_game(g) for g in result]}


@router.get("/{game_id}")
async def get_game(game_id: uuid.UUID, service: Service) -> dict[str, Any]:
    result = await service.get(game_id)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"game": serialize_game(result)}


@router.patch("/{game_id}")
async def update_game(
    game_id: uuid.UUID,
    request: GameFields,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Update the provided fields of a game (host only)."""
    result = await service.update(game_id, user.id, request.model_dump(exclude_unset=True))
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"game": serialize_game(result)}


@router.delete("/{game_id}")
async def delete_game(game_id: uuid.UUID, user: CurrentUser, service: Service) -> dict[str, Any]:
    result = await service.delete(game_id, user.id)
    if isinstance(result, GameError):
        raise_for_error(result)
    logger.info(f"Game {game_id} deleted via API")
    return {"success": True}


@router.post("/{game_id}/end")
async def end_game(game_id: uuid.UUID, user: CurrentUser, service: Service) -> dict[str, Any]:
    """Mark a game completed (host only)."""
    result = await service.end(game_id, user.id)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"game": serialize_game(result)}


@router.post("/{game_id}/join")
async def join_game(game_id: uuid.UUID, user: CurrentUser, service: Service) -> dict[str, Any]:
    result = await service.join(game_id, user.id)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"game": serialize_game(result)}


@router.post("/{game_id}/leave")
async def leave_game(game_id: uuid.UUID, user: CurrentUser, service: Service) -> dict[str, Any]:
    result = await service.leave(game_id, user.id)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"success": True}


@router.get("/{game_id}/players")
async def game_roster(game_id: uuid.UUID, service: Service) -> dict[str, Any]:
    """Get the members of a game, host first."""
    result = await service.roster(game_id)
    if isinstance(result, GameError):
        raise_for_error(result)
    return {"players": [serialize_member(m) for m in result]}
