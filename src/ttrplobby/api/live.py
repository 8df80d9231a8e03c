"""Live room API endpoints."""

import logging
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import AliasChoices, BaseModel, Field

from ttrplobby.api.dependencies import get_live_service
from ttrplobby.api.errors import raise_for_error
from ttrplobby.auth.dependencies import get_required_user_with_dev_bypass
from ttrplobby.auth.rate_limit import quick_join_rate_limit, upload_rate_limit
from ttrplobby.db.models import User
from ttrplobby.live.config import (
    DEFAULT_IS_18_PLUS,
    DEFAULT_IS_PRIVATE,
    DEFAULT_LENGTH_MINUTES,
    DEFAULT_NEW_PLAYER_FRIENDLY,
    DEFAULT_SYSTEM,
    catalog,
    normalize_length_minutes,
    to_bool,
)
from ttrplobby.live.matching import MatchCriteria
from ttrplobby.live.serializers import serialize_message, serialize_room
from ttrplobby.live.service import LiveError, LiveRoomService, NewLiveRoom
from ttrplobby.settings import get_settings
from ttrplobby.ws.live_handler import CLOSE_NOT_MEMBER, live_connection_manager
from ttrplobby.ws.protocol import ChatBroadcastMessage, KickedMessage, RoomEndedMessage, dump

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["live"])

CurrentUser = Annotated[User, Depends(get_required_user_with_dev_bypass)]
Service = Annotated[LiveRoomService, Depends(get_live_service)]


class CreateLiveRoomRequest(BaseModel):
    """Request body for opening a live room.

    Accepts the canonical snake_case fields plus the aliases older clients
    send (npf, adult, seats, discord, vtt_url, photo_url, length in hours).
    """

    system: str | None = None
    length_minutes: Any = Field(
        default=None, validation_alias=AliasChoices("length_minutes", "lengthMinutes")
    )
    length_hours: Any = Field(
        default=None, validation_alias=AliasChoices("length_hours", "lengthHours")
    )
    length: Any = None
    max_players: Any = Field(
        default=None, validation_alias=AliasChoices("max_players", "maxPlayers", "seats")
    )
    new_player_friendly: Any = Field(
        default=None,
        validation_alias=AliasChoices("new_player_friendly", "newPlayerFriendly", "npf"),
    )
    is_18_plus: Any = Field(
        default=None, validation_alias=AliasChoices("is_18_plus", "is18Plus", "adult")
    )
    is_private: Any = Field(
        default=None, validation_alias=AliasChoices("is_private", "isPrivate")
    )
    title: str | None = None
    vibe: str | None = None
    discord_url: str | None = Field(
        default=None, validation_alias=AliasChoices("discord_url", "discordUrl", "discord")
    )
    game_url: str | None = Field(
        default=None, validation_alias=AliasChoices("game_url", "gameUrl", "vtt_url", "vtt")
    )
    poster_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "poster_url", "posterUrl", "photo_url", "image_url", "poster", "photo", "image"
        ),
    )
    poster_storage_path: str | None = Field(
        default=None, validation_alias=AliasChoices("poster_storage_path", "posterStoragePath")
    )
    time_zone: str | None = Field(
        default=None, validation_alias=AliasChoices("time_zone", "timeZone")
    )

    def to_new_room(self) -> NewLiveRoom:
        """Normalize aliases and defaults into a NewLiveRoom."""

        def flag(value: Any, default: bool) -> bool:
            return default if value is None else to_bool(value)

        return NewLiveRoom(
            system=(self.system or "").strip() or None,
            length_minutes=normalize_length_minutes(
                self.length_minutes, self.length_hours, self.length
            ),
            new_player_friendly=flag(self.new_player_friendly, DEFAULT_NEW_PLAYER_FRIENDLY),
            is_18_plus=flag(self.is_18_plus, DEFAULT_IS_18_PLUS),
            is_private=flag(self.is_private, DEFAULT_IS_PRIVATE),
            max_players=self.max_players,
            title=self.title,
            vibe=self.vibe,
            discord_url=self.discord_url,
            game_url=self.game_url,
            poster_url=self.poster_url,
            poster_storage_path=self.poster_storage_path,
            time_zone=self.time_zone,
        )


class QuickJoinRequest(BaseModel):
    """One quick-join attempt."""

    system: str = DEFAULT_SYSTEM
    length_minutes: int = Field(default=DEFAULT_LENGTH_MINUTES, alias="lengthMinutes")
    tolerance_minutes: int = Field(default=0, alias="toleranceMinutes")
    new_player_friendly: bool | None = Field(default=None, alias="newPlayerFriendly")
    adult: bool | None = None
    ignore_flags: bool = Field(default=False, alias="ignoreFlags")
    # Accepted for older clients; widening is expressed by toleranceMinutes
    widen: bool = False

    model_config = {"populate_by_name": True}

    def to_criteria(self) -> MatchCriteria:
        return MatchCriteria(
            system=self.system,
            length_minutes=self.length_minutes,
            new_player_friendly=(
                DEFAULT_NEW_PLAYER_FRIENDLY
                if self.new_player_friendly is None
                else self.new_player_friendly
            ),
            adult=DEFAULT_IS_18_PLUS if self.adult is None else self.adult,
            tolerance_minutes=self.tolerance_minutes,
            ignore_flags=self.ignore_flags,
        )


class MatchAndJoinRequest(BaseModel):
    """Filters for match-and-join. Null means any."""

    system: str | None = None
    newbie: bool | None = None
    adult: bool | None = None
    length: int | None = None


class HeartbeatRequest(BaseModel):
    """Presence heartbeat."""

    room_id: uuid.UUID = Field(validation_alias=AliasChoices("room_id", "roomId"))
    share_location: bool = Field(
        default=False, validation_alias=AliasChoices("share_location", "shareLocation")
    )
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)


class KickRequest(BaseModel):
    """Player to remove from a room."""

    user_id: int = Field(validation_alias=AliasChoices("user_id", "userId"))


class PostMessageRequest(BaseModel):
    """Chat message body."""

    body: str = ""


def _joined(room_id: uuid.UUID) -> dict[str, Any]:
    return {"gameId": str(room_id), "href": f"/live/{room_id}"}


@router.get("/config")
async def get_config() -> dict[str, Any]:
    """Get the systems, lengths and defaults used by live room forms."""
    return catalog()


@router.post("")
async def create_room(
    request: CreateLiveRoomRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Open a live room. Any other open room of the host is closed."""
    result = await service.create(user.id, request.to_new_room())
    if isinstance(result, LiveError):
        raise_for_error(result)

    logger.info(f"Live room {result.id} created via API by user {user.id}")
    return {"gameId": str(result.id), "href": f"/live/{result.id}?host=1"}


@router.post("/quick-join", dependencies=[Depends(quick_join_rate_limit)])
async def quick_join(
    request: QuickJoinRequest,
    user: CurrentUser,
    service: Service,
    exclude: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Seat the caller in the oldest open room matching one search step.

    Returns 404 when nothing matches; clients retry with wider criteria.
    """
    result = await service.quick_join(user.id, request.to_criteria(), exclude=exclude)
    if isinstance(result, LiveError):
        raise_for_error(result)
    return {"gameId": str(result.id)}


@router.post("/join")
async def match_and_join(
    request: MatchAndJoinRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Seat the caller in any discoverable open room matching the filters."""
    result = await service.match_and_join(
        user.id,
        system=request.system,
        new_player_friendly=request.newbie,
        adult=request.adult,
        length_minutes=request.length,
    )
    if isinstance(result, LiveError):
        raise_for_error(result)
    return {"gameId": str(result.id)}


@router.post("/heartbeat")
async def heartbeat(
    request: HeartbeatRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Record that the caller is still in a room."""
    result = await service.heartbeat(
        request.room_id,
        user.id,
        share_location=request.share_location,
        lat=request.lat,
        lon=request.lon,
        city=request.city,
        country=request.country,
    )
    if isinstance(result, LiveError):
        raise_for_error(result)
    return {"ok": True}


@router.post("/poster", dependencies=[Depends(upload_rate_limit)])
async def upload_poster(
    user: CurrentUser,
    service: Service,
    file: Annotated[UploadFile, File()],
) -> dict[str, Any]:
    """Upload a poster image for a room the caller is about to open."""
    data = await file.read()
    result = await service.upload_poster(user.id, file.filename, file.content_type, data)
    if isinstance(result, LiveError):
        raise_for_error(result)

    url, path = result
    return {"posterUrl": url, "posterStoragePath": path}


@router.get("/players")
async def players_map(
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Players seen in the last two minutes, for the players map."""
    points = await service.players_map(get_settings().presence_window_seconds)
    return {
        "players": [
            {
                "userId": p.user_id,
                "roomId": str(p.room_id),
                "displayName": p.display_name,
                "avatarUrl": p.avatar_url,
                "lastSeenAt": p.last_seen_at.isoformat(),
                "lat": p.lat,
                "lon": p.lon,
                "city": p.city,
                "country": p.country,
            }
            for p in points
        ]
    }


@router.get("/{room_id}")
async def get_room(
    room_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Get a room with its occupied and open seats."""
    result = await service.get(room_id)
    if isinstance(result, LiveError):
        raise_for_error(result)
    return {"room": serialize_room(result)}


@router.post("/{room_id}/join")
async def join_room(
    room_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Join a room by direct link. Works for private rooms."""
    result = await service.join(room_id, user.id)
    if isinstance(result, LiveError):
        raise_for_error(result)
    return _joined(result.id)


@router.post("/{room_id}/leave")
async def leave_room(
    room_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Give up the caller's seat."""
    result = await service.leave(room_id, user.id)
    if isinstance(result, LiveError):
        raise_for_error(result)
    await live_connection_manager.close_user(str(room_id), user.id, 1000, "Left room")
    return {"success": True}


@router.post("/{room_id}/kick")
async def kick_player(
    room_id: uuid.UUID,
    request: KickRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Remove a player from the room (host only)."""
    result = await service.kick(room_id, user.id, request.user_id)
    if isinstance(result, LiveError):
        raise_for_error(result)

    key = str(room_id)
    await live_connection_manager.broadcast(key, dump(KickedMessage(user_id=request.user_id)))
    await live_connection_manager.close_user(key, request.user_id, CLOSE_NOT_MEMBER, "Removed by host")
    return {"success": True}


@router.post("/{room_id}/end")
async def end_room(
    room_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """End the room (host only)."""
    result = await service.end(room_id, user.id)
    if isinstance(result, LiveError):
        raise_for_error(result)

    key = str(room_id)
    await live_connection_manager.broadcast(key, dump(RoomEndedMessage(room_id=key)))
    await live_connection_manager.close_room(key)
    logger.info(f"Live room {room_id} ended via API")
    return {"success": True}


@router.get("/{room_id}/messages")
async def list_messages(
    room_id: uuid.UUID,
    user: CurrentUser,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> dict[str, Any]:
    """Get the room's chat, oldest first (members only)."""
    result = await service.list_messages(room_id, user.id, limit=limit)
    if isinstance(result, LiveError):
        raise_for_error(result)
    return {"messages": [serialize_message(m) for m in result]}


@router.post("/{room_id}/messages")
async def post_message(
    room_id: uuid.UUID,
    request: PostMessageRequest,
    user: CurrentUser,
    service: Service,
) -> dict[str, Any]:
    """Post a chat message (members only). Blank messages are ignored."""
    result = await service.post_message(room_id, user.id, request.body)
    if isinstance(result, LiveError):
        raise_for_error(result)
    if result is None:
        return {"message": None}

    payload = serialize_message(result)
    await live_connection_manager.broadcast(
        str(room_id), dump(ChatBroadcastMessage(message=payload))
    )
    return {"message": payload}
