"""WebSocket handler for live room channels.

Each room has one channel. Only the host and seated players may connect.
The channel carries presence (who has the room open), chat, and host
actions such as removing a player or ending the room.
"""

import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ttrplobby.auth.backend import get_jwt_strategy
from ttrplobby.auth.users import UserManager, build_user_db
from ttrplobby.db.models import User
from ttrplobby.db.session import async_session_factory
from ttrplobby.live.serializers import serialize_message
from ttrplobby.live.service import LiveError, LiveRoomService
from ttrplobby.ws.protocol import (
    ChatBroadcastMessage,
    ChatMessage,
    ErrorMessage,
    PingMessage,
    PongMessage,
    PresenceJoinMessage,
    PresenceLeaveMessage,
    PresenceStateMessage,
    PresenceUser,
    dump,
    parse_client_message,
)

logger = logging.getLogger(__name__)

# Close codes
CLOSE_INVALID_TOKEN = 4001
CLOSE_NOT_MEMBER = 4003
CLOSE_NOT_FOUND = 4004


def presence_user(user: User) -> PresenceUser:
    """Build the presence entry for a user."""
    return PresenceUser(user_id=user.id, display_name=user.name, avatar_url=user.avatar_url)


class LiveConnectionManager:
    """Manages WebSocket connections for live rooms.

    A user may have several connections to the same room (multiple tabs);
    presence changes are only announced for the first and last of them.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        # room_id -> {websocket: presence user}
        self.connections: dict[str, dict[WebSocket, PresenceUser]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, room_id: str, websocket: WebSocket, user: PresenceUser) -> bool:
        """Add a WebSocket connection to a room.

        Args:
            room_id: The room ID
            websocket: The WebSocket connection (accepted by this call)
            user: The connecting user

        Returns:
            True if this is the user's first connection to the room
        """
        await websocket.accept()
        async with self._lock:
            room = self.connections.setdefault(room_id, {})
            first = all(u.user_id != user.user_id for u in room.values())
            room[websocket] = user
        logger.info(f"User {user.user_id} connected to live room {room_id}")
        return first

    async def disconnect(self, room_id: str, websocket: WebSocket) -> PresenceUser | None:
        """Remove a WebSocket connection from a room.

        Returns:
            The user if this was their last connection to the room, else None
        """
        async with self._lock:
            room = self.connections.get(room_id)
            if room is None:
                return None
            user = room.pop(websocket, None)
            if not room:
                del self.connections[room_id]
            if user is None:
                return None
            logger.info(f"User {user.user_id} disconnected from live room {room_id}")
            still_here = room and any(u.user_id == user.user_id for u in room.values())
            return None if still_here else user

    def present_users(self, room_id: str) -> list[PresenceUser]:
        """Users with at least one open connection to a room."""
        seen: dict[int, PresenceUser] = {}
        for user in self.connections.get(room_id, {}).values():
            seen.setdefault(user.user_id, user)
        return list(seen.values())

    def has_connections(self, room_id: str) -> bool:
        """Check if a room has any connections."""
        return bool(self.connections.get(room_id))

    async def broadcast(self, room_id: str, message: dict[str, Any]) -> None:
        """Broadcast a message to all connections of a room.

        Args:
            room_id: The room ID
            message: The message to send (will be JSON encoded)
        """
        async with self._lock:
            connections = list(self.connections.get(room_id, {}).items())

        if not connections:
            return

        data = json.dumps(message)
        disconnected: list[WebSocket] = []

        for websocket, _user in connections:
            try:
                await websocket.send_text(data)
            except Exception:
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                room = self.connections.get(room_id)
                if room is not None:
                    for websocket in disconnected:
                        room.pop(websocket, None)
                    if not room:
                        del self.connections[room_id]

    async def close_user(self, room_id: str, user_id: int, code: int, reason: str) -> None:
        """Close every connection a user has to a room."""
        async with self._lock:
            room = self.connections.get(room_id, {})
            sockets = [ws for ws, user in room.items() if user.user_id == user_id]
            for websocket in sockets:
                room.pop(websocket, None)
            if room_id in self.connections and not room:
                del self.connections[room_id]

        for websocket in sockets:
            try:
                await websocket.close(code=code, reason=reason)
            except Exception:
                logger.debug(f"Connection of user {user_id} in room {room_id} already closed")

    async def close_room(self, room_id: str, reason: str = "Room ended") -> None:
        """Close all connections of a room (used when the room ends)."""
        async with self._lock:
            room = self.connections.pop(room_id, {})

        for websocket in room:
            try:
                await websocket.close(code=1000, reason=reason)
            except Exception:
                logger.debug(f"Connection in room {room_id} already closed")


# Global connection manager instance
live_connection_manager = LiveConnectionManager()


async def authenticate_token(token: str | None) -> User | None:
    """Resolve a JWT access token to an active user."""
    if not token:
        return None
    async with async_session_factory() as session:
        user_manager = UserManager(build_user_db(session))
        user = await get_jwt_strategy().read_token(token, user_manager)
    if user is None or not user.is_active:
        return None
    return user


async def check_room_access(room_id: uuid.UUID, user_id: int) -> int | None:
    """Check that a room exists and the user may join its channel.

    Returns:
        A close code if access is denied, else None
    """
    async with async_session_factory() as session:
        service = LiveRoomService(session)
        room = await service.get(room_id)
        if isinstance(room, LiveError):
            return CLOSE_NOT_FOUND
        if not await service.can_access(room, user_id):
            return CLOSE_NOT_MEMBER
    return None


async def post_chat(room_id: uuid.UUID, user_id: int, body: str) -> dict[str, Any] | LiveError | None:
    """Persist a chat message and return its serialized form."""
    async with async_session_factory() as session:
        result = await LiveRoomService(session).post_message(room_id, user_id, body)
        if result is None or isinstance(result, LiveError):
            return result
        payload = serialize_message(result)
        await session.commit()
    return payload


async def _send(websocket: WebSocket, message: dict[str, Any]) -> None:
    await websocket.send_text(json.dumps(message))


async def handle_live_websocket(websocket: WebSocket, room_id: str, token: str | None) -> None:
    """Handle a WebSocket connection for a live room.

    Args:
        websocket: The WebSocket connection
        room_id: The room ID from the URL
        token: JWT access token from the query string
    """
    logger.info(f"Live WebSocket connection attempt: room={room_id}")

    try:
        room_uuid = uuid.UUID(room_id)
    except ValueError:
        await websocket.close(code=CLOSE_NOT_FOUND, reason="Room not found")
        return

    user = await authenticate_token(token)
    if user is None:
        logger.warning(f"Live WebSocket rejected: invalid token for room {room_id}")
        await websocket.close(code=CLOSE_INVALID_TOKEN, reason="Invalid token")
        return

    denied = await check_room_access(room_uuid, user.id)
    if denied is not None:
        logger.warning(f"Live WebSocket rejected: user {user.id} denied room {room_id} ({denied})")
        reason = "Room not found" if denied == CLOSE_NOT_FOUND else "Not a member of this room"
        await websocket.close(code=denied, reason=reason)
        return

    key = str(room_uuid)
    me = presence_user(user)
    first = await live_connection_manager.connect(key, websocket, me)

    await _send(
        websocket,
        dump(PresenceStateMessage(users=live_connection_manager.present_users(key))),
    )
    if first:
        await live_connection_manager.broadcast(key, dump(PresenceJoinMessage(user=me)))

    try:
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                msg_data = json.loads(data)
            except json.JSONDecodeError:
                await _send(websocket, dump(ErrorMessage(code="invalid_json", message="Invalid JSON")))
                continue

            message = parse_client_message(msg_data) if isinstance(msg_data, dict) else None
            if message is None:
                await _send(
                    websocket,
                    dump(ErrorMessage(code="invalid_message", message="Unknown message type")),
                )
                continue

            if isinstance(message, PingMessage):
                await _send(websocket, dump(PongMessage()))
            elif isinstance(message, ChatMessage):
                result = await post_chat(room_uuid, user.id, message.body)
                if isinstance(result, LiveError):
                    await _send(websocket, dump(ErrorMessage(code=result.code, message=result.message)))
                elif result is not None:
                    await live_connection_manager.broadcast(
                        key, dump(ChatBroadcastMessage(message=result))
                    )
    except Exception:
        logger.exception(f"Error in live WebSocket for room {room_id}")
    finally:
        left = await live_connection_manager.disconnect(key, websocket)
        if left is not None:
            await live_connection_manager.broadcast(
                key, dump(PresenceLeaveMessage(user_id=left.user_id))
            )
