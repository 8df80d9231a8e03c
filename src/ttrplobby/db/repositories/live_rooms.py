"""Live room repository for database operations."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import LivePresence, LiveRoom, LiveRoomPlayer, LobbyMessage, utcnow

logger = logging.getLogger(__name__)


def _seat_count():
    """Correlated subquery counting seats taken in the outer LiveRoom."""
    return (
        select(func.count())
        .select_from(LiveRoomPlayer)
        .where(LiveRoomPlayer.room_id == LiveRoom.id)
        .scalar_subquery()
    )


class LiveRoomRepository:
    """Repository for live rooms, their seats and presence."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: The database session to use
        """
        self.session = session

    async def create(self, room: LiveRoom) -> LiveRoom:
        """Insert a new room and seat its host.

        Args:
            room: Unsaved room (host_id must be set)

        Returns:
            The saved room with its generated ID
        """
        self.session.add(room)
        await self.session.flush()
        self.session.add(LiveRoomPlayer(room_id=room.id, user_id=room.host_id, role="host"))
        await self.session.flush()
        await self.session.refresh(room, ["players"])
        logger.info(f"Created live room {room.id} for host {room.host_id}")
        return room

    async def get_by_id(self, room_id: uuid.UUID) -> LiveRoom | None:
        """Get a room by ID.

        Args:
            room_id: The room ID

        Returns:
            The room or None if not found
        """
        result = await self.session.execute(
            select(LiveRoom)
            .where(LiveRoom.id == room_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, room_id: uuid.UUID) -> LiveRoom | None:
        """Get a room and lock its row until the transaction ends.

        Concurrent joins serialize on this lock so seat counts stay accurate.
        """
        result = await self.session.execute(
            select(LiveRoom)
            .where(LiveRoom.id == room_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def close_open_rooms_for_host(self, host_id: int) -> int:
        """Close every open room of a host.

        Returns:
            Number of rooms closed
        """
        result = await self.session.execute(
            update(LiveRoom)
            .where(LiveRoom.host_id == host_id, LiveRoom.status == "open")
            .values(status="closed", updated_at=utcnow())
        )
        if result.rowcount:
            logger.info(f"Closed {result.rowcount} open room(s) of host {host_id}")
        return result.rowcount

    async def list_hosted_open(self, host_id: int) -> list[LiveRoom]:
        """Get the open rooms hosted by a user."""
        result = await self.session.execute(
            select(LiveRoom).where(LiveRoom.host_id == host_id, LiveRoom.status == "open")
        )
        return list(result.scalars().all())

    async def find_quick_join_match(
        self,
        user_id: int,
        system: str,
        min_length: int,
        max_length: int,
        new_player_friendly: bool | None,
        adult: bool | None,
        exclude: uuid.UUID | None = None,
    ) -> LiveRoom | None:
        """Find the oldest open room matching quick-join filters.

        Only public rooms with a free seat that the user does not host are
        considered. Flags set to None are not filtered.

        Args:
            user_id: The searching player
            system: Canonical system label
            min_length: Shortest accepted session length in minutes
            max_length: Longest accepted session length in minutes
            new_player_friendly: Required new-player flag, or None for any
            adult: Required 18+ flag, or None for any
            exclude: Room ID to skip

        Returns:
            The matching room or None
        """
        query = (
            select(LiveRoom)
            .where(
                LiveRoom.status == "open",
                LiveRoom.is_private.is_(False),
                LiveRoom.host_id != user_id,
                LiveRoom.system == system,
                LiveRoom.length_minutes >= min_length,
                LiveRoom.length_minutes <= max_length,
                _seat_count() < LiveRoom.max_players,
            )
            .order_by(LiveRoom.created_at.asc())
            .limit(1)
        )
        if new_player_friendly is not None:
            query = query.where(LiveRoom.new_player_friendly.is_(new_player_friendly))
        if adult is not None:
            query = query.where(LiveRoom.is_18_plus.is_(adult))
        if exclude is not None:
            query = query.where(LiveRoom.id != exclude)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_any_match(
        self,
        user_id: int,
        system: str | None,
        new_player_friendly: bool | None,
        adult: bool | None,
        length_minutes: int | None,
        discoverable_only: bool = True,
    ) -> LiveRoom | None:
        """Find the oldest open room where every non-null filter matches."""
        query = (
            select(LiveRoom)
            .where(
                LiveRoom.status == "open",
                LiveRoom.host_id != user_id,
                _seat_count() < LiveRoom.max_players,
            )
            .order_by(LiveRoom.created_at.asc())
            .limit(1)
        )
        if discoverable_only:
            query = query.where(LiveRoom.is_private.is_(False))
        if system is not None:
            query = query.where(LiveRoom.system == system)
        if new_player_friendly is not None:
            query = query.where(LiveRoom.new_player_friendly.is_(new_player_friendly))
        if adult is not None:
            query = query.where(LiveRoom.is_18_plus.is_(adult))
        if length_minutes is not None:
            query = query.where(LiveRoom.length_minutes == length_minutes)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def count_players(self, room_id: uuid.UUID) -> int:
        """Count occupied seats in a room."""
        result = await self.session.execute(
            select(func.count())
            .select_from(LiveRoomPlayer)
            .where(LiveRoomPlayer.room_id == room_id)
        )
        return result.scalar_one()

    async def is_member(self, room_id: uuid.UUID, user_id: int) -> bool:
        """Check if a user holds a seat in a room."""
        result = await self.session.execute(
            select(LiveRoomPlayer.user_id).where(
                LiveRoomPlayer.room_id == room_id, LiveRoomPlayer.user_id == user_id
            )
        )
        return result.first() is not None

    async def add_player(self, room_id: uuid.UUID, user_id: int, role: str = "player") -> None:
        """Seat a user in a room. Does nothing if already seated."""
        await self.session.execute(
            insert(LiveRoomPlayer)
            .values(room_id=room_id, user_id=user_id, role=role, joined_at=utcnow())
            .on_conflict_do_nothing(index_elements=["room_id", "user_id"])
        )

    async def remove_player(self, room_id: uuid.UUID, user_id: int) -> bool:
        """Remove a user's seat.

        Returns:
            True if a seat was removed
        """
        result = await self.session.execute(
            delete(LiveRoomPlayer).where(
                LiveRoomPlayer.room_id == room_id, LiveRoomPlayer.user_id == user_id
            )
        )
        await self.session.execute(
            delete(LivePresence).where(
                LivePresence.room_id == room_id, LivePresence.user_id == user_id
            )
        )
        return result.rowcount > 0

    async def end_room(self, room: LiveRoom) -> None:
        """Mark a room ended and clear its seats and presence."""
        room.status = "ended"
        room.ended_at = utcnow()
        await self.session.execute(
            delete(LiveRoomPlayer).where(LiveRoomPlayer.room_id == room.id)
        )
        await self.session.execute(delete(LivePresence).where(LivePresence.room_id == room.id))
        await self.session.flush()
        logger.info(f"Ended live room {room.id}")

    async def upsert_presence(
        self,
        room_id: uuid.UUID,
        user_id: int,
        *,
        share_location: bool = False,
        lat: float | None = None,
        lon: float | None = None,
        city: str | None = None,
        country: str | None = None,
    ) -> None:
        """Record a heartbeat for a user in a room."""
        values = {
            "room_id": room_id,
            "user_id": user_id,
            "last_seen_at": utcnow(),
            "share_location": share_location,
            "lat": lat,
            "lon": lon,
            "city": city,
            "country": country,
        }
        stmt = insert(LivePresence).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["room_id", "user_id"],
            set_={k: stmt.excluded[k] for k in values if k not in ("room_id", "user_id")},
        )
        await self.session.execute(stmt)

    async def list_recent_presence(self, since: datetime) -> list[LivePresence]:
        """Get presences seen at or after a time, newest first."""
        result = await self.session.execute(
            select(LivePresence)
            .where(LivePresence.last_seen_at >= since)
            .order_by(LivePresence.last_seen_at.desc())
        )
        return list(result.scalars().all())

    async def delete_presence_for_user(self, user_id: int) -> int:
        """Delete every presence row of a user."""
        result = await self.session.execute(
            delete(LivePresence).where(LivePresence.user_id == user_id)
        )
        return result.rowcount

    async def close_stale_rooms(self, cutoff: datetime) -> list[uuid.UUID]:
        """Close open rooms created before cutoff whose host has gone quiet.

        A host is quiet when they have no presence in the room with
        last_seen_at at or after cutoff.

        Args:
            cutoff: Rooms and heartbeats older than this are stale

        Returns:
            IDs of the rooms that were closed
        """
        host_alive = (
            select(LivePresence.room_id)
            .where(
                LivePresence.room_id == LiveRoom.id,
                LivePresence.user_id == LiveRoom.host_id,
                LivePresence.last_seen_at >= cutoff,
            )
            .exists()
        )
        result = await self.session.execute(
            update(LiveRoom)
            .where(
                LiveRoom.status == "open",
                LiveRoom.created_at < cutoff,
                ~host_alive,
            )
            .values(status="closed", updated_at=utcnow())
            .returning(LiveRoom.id)
        )
        return list(result.scalars().all())

    async def list_discoverable_open(self, limit: int = 500) -> list[LiveRoom]:
        """Get public open rooms, newest first."""
        result = await self.session.execute(
            select(LiveRoom)
            .where(LiveRoom.status == "open", LiveRoom.is_private.is_(False))
            .order_by(LiveRoom.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def add_message(self, room_id: uuid.UUID, user_id: int, body: str) -> LobbyMessage:
        """Post a chat message."""
        message = LobbyMessage(room_id=room_id, user_id=user_id, body=body)
        self.session.add(message)
        await self.session.flush()
        await self.session.refresh(message, ["user"])
        return message

    async def list_messages(self, room_id: uuid.UUID, limit: int = 100) -> list[LobbyMessage]:
        """Get the latest messages of a room in chronological order."""
        result = await self.session.execute(
            select(LobbyMessage)
            .where(LobbyMessage.room_id == room_id)
            .order_by(LobbyMessage.created_at.desc(), LobbyMessage.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))
