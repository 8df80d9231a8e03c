"""Application API endpoints for scheduled games."""

import logging
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ttrplobby.api.dependencies import get_application_service
from ttrplobby.api.errors import raise_for_error
from ttrplobby.api.games import serialize_game
from ttrplobby.auth.dependencies import get_required_user_with_dev_bypass
from ttrplobby.db.models import Application, User
from ttrplobby.live.serializers import serialize_user
from ttrplobby.scheduling.applications import ApplicationError, ApplicationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games/{game_id}/applications", tags=["applications"])

CurrentUser = Annotated[User, Depends(get_required_user_with_dev_bypass)]
Service = Annotated[ApplicationService, Depends(get_application_service)]


class ApplyRequest(BaseModel):
    """Applicant answers."""

    timezone: str | None = Field(default=None, max_length=64)
    experience: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=4000)


class AcceptRequest(BaseModel):
    """Host acceptance details shared with the player."""

    details: str | None = Field(default=None, max_length=4000)
    discord_invite: str | None = None
    vtt_link: str | None = None


class DeclineRequest(BaseModel):
    """Optional message to the declined player."""

    message: str | None = Field(default=None, max_length=4000)


def serialize_application(application: Application) -> dict[str, Any]:
    """Serialize an application with its applicant."""
    return {
        "id": application.id,
        "game_id": str(application.game_id),
        "player": serialize_user(application.player),
        "status": application.status,
        "fit_score": application.fit_score,
        "answers": application.answers,
        "dm_decision": application.dm_decision,
        "created_at": application.created_at.isoformat(),
        "updated_at": application.updated_at.isoformat(),
    }


@router.post("")
async def apply(
    game_id: uuid.UUID,
    request: ApplyRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Apply to a game. One application per player per game."""
    result = await service.apply(
        game_id,
        user.id,
        timezone=request.timezone,
        experience=request.experience,
        notes=request.notes,
    )
    if isinstance(result, ApplicationError):
        raise_for_error(result)
    return {"application": serialize_application(result)}


@router.get("")
async def application_board(
    game_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Applications grouped by status (host only)."""
    result = await service.board(game_id, user.id)
    if isinstance(result, ApplicationError):
        raise_for_error(result)
    return {
        "game": serialize_game(result.game),
        "columns": {
            status: [serialize_application(a) for a in apps]
            for status, apps in result.columns.items()
        },
    }


@router.get("/{application_id}")
async def application_detail(
    game_id: uuid.UUID,
    application_id: int,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    result = await service.detail(game_id, application_id, user.id)
    if isinstance(result, ApplicationError):
        raise_for_error(result)
    game, application = result
    return {"game": serialize_game(game), "application": serialize_application(application)}


@router.post("/{application_id}/accept")
async def accept_application(
    game_id: uuid.UUID,
    application_id: int,
    request: AcceptRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Accept an applicant, seat them and notify them (host only)."""
    result = await service.accept(
        game_id,
        application_id,
        user.id,
        details=request.details,
        discord_invite=request.discord_invite,
        vtt_link=request.vtt_link,
    )
    if isinstance(result, ApplicationError):
        raise_for_error(result)
    return {"application": serialize_application(result)}


@router.post("/{application_id}/decline")
async def decline_application(
    game_id: uuid.UUID,
    application_id: int,
    request: DeclineRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Decline an applicant and notify them (host only)."""
    result = await service.decline(game_id, application_id, user.id, message=request.message)
    if isinstance(result, ApplicationError):
        raise_for_error(result)
    return {"application": serialize_application(result)}
