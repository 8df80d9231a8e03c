"""Live room service.

Business rules for instant lobbies: creation (one open room per host),
quick join, direct joins, host moderation, presence heartbeats and chat.
Operations return the result or a LiveError; the API layer maps error codes
to HTTP status codes.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import LiveRoom, LobbyMessage, utcnow
from ttrplobby.db.repositories.live_rooms import LiveRoomRepository
from ttrplobby.live.config import (
    clamp_seats,
    resolve_system,
    validate_create,
    validate_quick_join,
)
from ttrplobby.live.matching import MatchCriteria
from ttrplobby.storage import POSTERS_PREFIX, StorageClient, build_object_path

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
MAX_POSTER_BYTES = 5 * 1024 * 1024

# Retries when a matched room fills up between the search and the seat lock
SEAT_ATTEMPTS = 3


@dataclass
class LiveError:
    """Error result from a live room operation."""

    code: str
    message: str


@dataclass
class NewLiveRoom:
    """Normalized creation payload."""

    system: str | None
    length_minutes: int | None
    new_player_friendly: Any = True
    is_18_plus: Any = False
    is_private: Any = False
    max_players: Any = None
    title: str | None = None
    vibe: str | None = None
    discord_url: str | None = None
    game_url: str | None = None
    poster_url: str | None = None
    poster_storage_path: str | None = None
    time_zone: str | None = None


@dataclass
class PresencePoint:
    """A player shown on the players map."""

    user_id: int
    room_id: uuid.UUID
    display_name: str
    avatar_url: str | None
    last_seen_at: datetime
    lat: float | None = None
    lon: float | None = None
    city: str | None = None
    country: str | None = None


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LiveRoomService:
    """Live room operations bound to one database session."""

    def __init__(self, session: AsyncSession, storage: StorageClient | None = None) -> None:
        """Initialize the service.

        Args:
            session: Request database session
            storage: Object storage for posters
        """
        self.session = session
        self.rooms = LiveRoomRepository(session)
        self.storage = storage

    async def create(self, host_id: int, data: NewLiveRoom) -> LiveRoom | LiveError:
        """Open a new live room.

        Any other open room of the host is closed first, so a host has at
        most one open room. The host takes the first seat.

        Args:
            host_id: User opening the room
            data: Normalized payload

        Returns:
            The new room or LiveError
        """
        error = validate_create(
            data.system,
            data.length_minutes,
            data.new_player_friendly,
            data.is_18_plus,
            data.is_private,
        )
        if error is not None:
            return LiveError(code=error, message=_VALIDATION_MESSAGES[error])

        await self.rooms.close_open_rooms_for_host(host_id)

        room = LiveRoom(
            host_id=host_id,
            status="open",
            system=resolve_system(data.system),
            length_minutes=data.length_minutes,
            max_players=clamp_seats(data.max_players),
            new_player_friendly=data.new_player_friendly,
            is_18_plus=data.is_18_plus,
            is_private=data.is_private,
            title=_blank_to_none(data.title),
            vibe=_blank_to_none(data.vibe),
            discord_url=_blank_to_none(data.discord_url),
            game_url=_blank_to_none(data.game_url),
            poster_url=_blank_to_none(data.poster_url),
            poster_storage_path=_blank_to_none(data.poster_storage_path),
            time_zone=_blank_to_none(data.time_zone),
        )
        return await self.rooms.create(room)

    async def get(self, room_id: uuid.UUID) -> LiveRoom | LiveError:
        """Get a room by ID."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        return room

    async def quick_join(
        self,
        user_id: int,
        criteria: MatchCriteria,
        exclude: uuid.UUID | None = None,
    ) -> LiveRoom | LiveError:
        """Seat the user in the oldest open room matching the criteria.

        Args:
            user_id: Searching player
            criteria: One step of the client's search plan
            exclude: Room to skip

        Returns:
            The joined room, or LiveError("no_match")
        """
        if criteria.ignore_flags:
            error = validate_quick_join(criteria.system, criteria.length_minutes, True, False)
        else:
            error = validate_quick_join(
                criteria.system, criteria.length_minutes, criteria.new_player_friendly, criteria.adult
            )
        if error is not None:
            return LiveError(code=error, message=_VALIDATION_MESSAGES[error])
        if criteria.tolerance_minutes < 0:
            return LiveError(code="invalid_tolerance", message="Tolerance must not be negative")

        system = resolve_system(criteria.system)
        min_length, max_length = criteria.length_window()
        npf = None if criteria.ignore_flags else criteria.new_player_friendly
        adult = None if criteria.ignore_flags else criteria.adult

        for _ in range(SEAT_ATTEMPTS):
            room = await self.rooms.find_quick_join_match(
                user_id, system, min_length, max_length, npf, adult, exclude
            )
            if room is None:
                break
            seated = await self._seat(room.id, user_id)
            if not isinstance(seated, LiveError):
                logger.info(f"Quick join seated user {user_id} in room {room.id}")
                return seated

        return LiveError(code="no_match", message="No match")

    async def match_and_join(
        self,
        user_id: int,
        system: str | None = None,
        new_player_friendly: bool | None = None,
        adult: bool | None = None,
        length_minutes: int | None = None,
    ) -> LiveRoom | LiveError:
        """Seat the user in any discoverable open room; None filters match anything."""
        if system is not None:
            resolved = resolve_system(system)
            if resolved is None:
                return LiveError(code="invalid_system", message=_VALIDATION_MESSAGES["invalid_system"])
            system = resolved

        for _ in range(SEAT_ATTEMPTS):
            room = await self.rooms.find_any_match(
                user_id, system, new_player_friendly, adult, length_minutes
            )
            if room is None:
                break
            seated = await self._seat(room.id, user_id)
            if not isinstance(seated, LiveError):
                return seated

        return LiveError(code="no_game_found", message="no_game_found")

    async def join(self, room_id: uuid.UUID, user_id: int) -> LiveRoom | LiveError:
        """Join a room by direct link. Private rooms are allowed."""
        return await self._seat(room_id, user_id)

    async def _seat(self, room_id: uuid.UUID, user_id: int) -> LiveRoom | LiveError:
        """Seat a user under the room row lock. Idempotent."""
        room = await self.rooms.get_for_update(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if room.status != "open":
            return LiveError(code="closed", message="This room is no longer open")

        if room.host_id == user_id or await self.rooms.is_member(room_id, user_id):
            return room

        if await self.rooms.count_players(room_id) >= room.max_players:
            return LiveError(code="full", message="This room is full")

        await self.rooms.add_player(room_id, user_id)
        await self.session.flush()
        logger.info(f"User {user_id} joined live room {room_id}")
        return await self.rooms.get_by_id(room_id)

    async def leave(self, room_id: uuid.UUID, user_id: int) -> bool | LiveError:
        """Give up a seat. Hosts end their room instead of leaving it."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if room.host_id == user_id:
            return LiveError(code="host_must_end", message="Hosts end the room instead of leaving")

        removed = await self.rooms.remove_player(room_id, user_id)
        if removed:
            logger.info(f"User {user_id} left live room {room_id}")
        return removed

    async def kick(self, room_id: uuid.UUID, host_id: int, user_id: int) -> bool | LiveError:
        """Remove a player from a room (host only)."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if room.host_id != host_id:
            return LiveError(code="forbidden", message="Only the host can remove players")
        if user_id == host_id:
            return LiveError(code="invalid_target", message="The host cannot remove themselves")

        if not await self.rooms.remove_player(room_id, user_id):
            return LiveError(code="not_member", message="That player is not in this room")

        logger.info(f"Host {host_id} removed user {user_id} from live room {room_id}")
        return True

    async def end(self, room_id: uuid.UUID, host_id: int) -> LiveRoom | LiveError:
        """End a room (host only), clearing seats, presence and the poster."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if room.host_id != host_id:
            return LiveError(code="forbidden", message="Only the host can end this room")

        await self._end(room)
        return room

    async def end_all_hosted(self, host_id: int) -> int:
        """End every open room of a host. Used by account deletion."""
        rooms = await self.rooms.list_hosted_open(host_id)
        for room in rooms:
            await self._end(room)
        return len(rooms)

    async def _end(self, room: LiveRoom) -> None:
        await self.rooms.end_room(room)
        if room.poster_storage_path and self.storage is not None:
            try:
                await asyncio.to_thread(self.storage.delete, [room.poster_storage_path])
            except Exception as e:
                logger.warning(f"Failed to delete poster of room {room.id}: {e}")

    async def heartbeat(
        self,
        room_id: uuid.UUID,
        user_id: int,
        *,
        share_location: bool = False,
        lat: float | None = None,
        lon: float | None = None,
        city: str | None = None,
        country: str | None = None,
    ) -> bool | LiveError:
        """Record that a user is still present in a room."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")

        await self.rooms.upsert_presence(
            room_id,
            user_id,
            share_location=share_location,
            lat=lat,
            lon=lon,
            city=city,
            country=country,
        )
        return True

    async def players_map(self, window_seconds: int) -> list[PresencePoint]:
        """Players seen in the last window_seconds, one entry per player.

        Coordinates are only included for players who chose to share them.
        """
        since = utcnow() - timedelta(seconds=window_seconds)
        points: dict[int, PresencePoint] = {}
        for presence in await self.rooms.list_recent_presence(since):
            # Newest first, so the first row per user wins
            if presence.user_id in points:
                continue
            point = PresencePoint(
                user_id=presence.user_id,
                room_id=presence.room_id,
                display_name=presence.user.name,
                avatar_url=presence.user.avatar_url,
                last_seen_at=presence.last_seen_at,
            )
            if presence.share_location:
                point.lat = presence.lat
                point.lon = presence.lon
                point.city = presence.city
                point.country = presence.country
            points[presence.user_id] = point
        return list(points.values())

    async def upload_poster(
        self,
        user_id: int,
        filename: str | None,
        content_type: str | None,
        data: bytes,
    ) -> tuple[str, str] | LiveError:
        """Store a poster image.

        Returns:
            Tuple of (public URL, storage path) or LiveError
        """
        if self.storage is None:
            return LiveError(code="storage_unavailable", message="Uploads are not available")
        if not content_type or not content_type.startswith("image/"):
            return LiveError(code="invalid_file", message="Posters must be images")
        if not data:
            return LiveError(code="invalid_file", message="The uploaded file is empty")
        if len(data) > MAX_POSTER_BYTES:
            return LiveError(code="file_too_large", message="Posters must be 5 MB or smaller")

        path = build_object_path(POSTERS_PREFIX, user_id, filename)
        await asyncio.to_thread(self.storage.upload_bytes, path, data, content_type)
        logger.info(f"User {user_id} uploaded poster {path}")
        return self.storage.public_url(path), path

    async def can_access(self, room: LiveRoom, user_id: int) -> bool:
        """Whether a user is the host or holds a seat in the room."""
        return room.host_id == user_id or await self.rooms.is_member(room.id, user_id)

    async def list_messages(
        self, room_id: uuid.UUID, user_id: int, limit: int = 100
    ) -> list[LobbyMessage] | LiveError:
        """Get the chat history of a room (members only), oldest first."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if not await self.can_access(room, user_id):
            return LiveError(code="forbidden", message="Join the room to read its chat")
        return await self.rooms.list_messages(room_id, limit=max(1, min(limit, 500)))

    async def post_message(
        self, room_id: uuid.UUID, user_id: int, body: str
    ) -> LobbyMessage | None | LiveError:
        """Post a chat message (members only).

        Returns:
            The message, None if the body was blank, or LiveError
        """
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            return LiveError(code="not_found", message="Live room not found")
        if room.status != "open":
            return LiveError(code="closed", message="This room is no longer open")
        if not await self.can_access(room, user_id):
            return LiveError(code="forbidden", message="Join the room to chat")

        body = (body or "").strip()
        if not body:
            return None
        return await self.rooms.add_message(room_id, user_id, body[:MAX_MESSAGE_LENGTH])


_VALIDATION_MESSAGES = {
    "invalid_system": "Unsupported game system",
    "invalid_length": "Unsupported session length",
    "invalid_npf": "newPlayerFriendly must be true or false",
    "invalid_adult": "adult must be true or false",
    "invalid_privacy": "isPrivate must be true or false",
}


async def close_stale_rooms(
    session_factory: "async_sessionmaker[AsyncSession]",
    threshold_seconds: int,
) -> list[uuid.UUID]:
    """Close open rooms whose host stopped sending heartbeats.

    Args:
        session_factory: Factory for a dedicated session
        threshold_seconds: Rooms and heartbeats older than this are stale

    Returns:
        IDs of the rooms that were closed
    """
    cutoff = utcnow() - timedelta(seconds=threshold_seconds)
    async with session_factory() as session:
        closed = await LiveRoomRepository(session).close_stale_rooms(cutoff)
        await session.commit()

    if closed:
        logger.info(f"Closed {len(closed)} stale live room(s)")
    return closed


async def run_stale_room_sweeper(
    session_factory: "async_sessionmaker[AsyncSession]",
    threshold_seconds: int,
    interval_seconds: float,
) -> None:
    """Periodically close stale rooms until cancelled."""
    logger.info(
        f"Stale room sweeper started (threshold={threshold_seconds}s, interval={interval_seconds}s)"
    )
    while True:
        try:
            await close_stale_rooms(session_factory, threshold_seconds)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Stale room sweep failed")
        await asyncio.sleep(interval_seconds)
