"""JSON serialization of live room objects for the API and WebSocket."""

from datetime import datetime
from typing import Any

from ttrplobby.db.models import LiveRoom, LiveRoomPlayer, LobbyMessage, User


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_user(user: User) -> dict[str, Any]:
    """Public identity of a user."""
    return {
        "userId": user.id,
        "displayName": user.name,
        "avatarUrl": user.avatar_url,
    }


def serialize_seat(player: LiveRoomPlayer) -> dict[str, Any]:
    """Serialize an occupied seat."""
    return {
        **serialize_user(player.user),
        "role": player.role,
        "joinedAt": _iso(player.joined_at),
    }


def serialize_room(room: LiveRoom) -> dict[str, Any]:
    """Serialize a live room with its occupied and open seats."""
    seats = sorted(room.players, key=lambda p: (p.role != "host", p.joined_at))
    return {
        "id": str(room.id),
        "hostId": room.host_id,
        "status": room.status,
        "system": room.system,
        "lengthMinutes": room.length_minutes,
        "maxPlayers": room.max_players,
        "newPlayerFriendly": room.new_player_friendly,
        "is18Plus": room.is_18_plus,
        "isPrivate": room.is_private,
        "title": room.title,
        "vibe": room.vibe,
        "discordUrl": room.discord_url,
        "gameUrl": room.game_url,
        "posterUrl": room.poster_url,
        "timeZone": room.time_zone,
        "players": [serialize_seat(p) for p in seats],
        "openSeats": max(0, room.max_players - len(seats)),
        "createdAt": _iso(room.created_at),
        "updatedAt": _iso(room.updated_at),
        "endedAt": _iso(room.ended_at),
    }


def serialize_message(message: LobbyMessage) -> dict[str, Any]:
    """Serialize a chat message."""
    return {
        "id": message.id,
        "roomId": str(message.room_id),
        "body": message.body,
        "createdAt": _iso(message.created_at),
        **serialize_user(message.user),
    }
