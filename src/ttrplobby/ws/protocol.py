"""WebSocket protocol message types for live room channels."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError


class ServerMessageType(Enum):
    """Types of messages sent from server to client."""

    PRESENCE_STATE = "presence_state"
    PRESENCE_JOIN = "presence_join"
    PRESENCE_LEAVE = "presence_leave"
    CHAT = "chat"
    KICKED = "kicked"
    ROOM_ENDED = "room_ended"
    PONG = "pong"
    ERROR = "error"


class ClientMessageType(Enum):
    """Types of messages sent from client to server."""

    CHAT = "chat"
    PING = "ping"


# Server -> Client Messages


class PresenceUser(BaseModel):
    """A user currently connected to the room channel."""

    user_id: int = Field(alias="userId")
    display_name: str = Field(alias="displayName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")

    model_config = {"populate_by_name": True}


class PresenceStateMessage(BaseModel):
    """Sent to a client right after it connects."""

    type: str = "presence_state"
    users: list[PresenceUser]


class PresenceJoinMessage(BaseModel):
    """Sent when a user opens their first connection to the room."""

    type: str = "presence_join"
    user: PresenceUser


class PresenceLeaveMessage(BaseModel):
    """Sent when a user's last connection to the room closes."""

    type: str = "presence_leave"
    user_id: int = Field(alias="userId")

    model_config = {"populate_by_name": True}


class ChatBroadcastMessage(BaseModel):
    """A chat message posted in the room."""

    type: str = "chat"
    message: dict[str, Any]


class KickedMessage(BaseModel):
    """The host removed a player. Sent to the whole room."""

    type: str = "kicked"
    user_id: int = Field(alias="userId")

    model_config = {"populate_by_name": True}


class RoomEndedMessage(BaseModel):
    """The host ended the room."""

    type: str = "room_ended"
    room_id: str = Field(alias="roomId")

    model_config = {"populate_by_name": True}


class PongMessage(BaseModel):
    """Response to ping."""

    type: str = "pong"


class ErrorMessage(BaseModel):
    """Error message."""

    type: str = "error"
    code: str
    message: str


# Client -> Server Messages


class ChatMessage(BaseModel):
    """Request to post a chat message."""

    type: str = "chat"
    body: str


class PingMessage(BaseModel):
    """Keepalive ping."""

    type: str = "ping"


def dump(message: BaseModel) -> dict[str, Any]:
    """Convert a server message to its JSON wire form."""
    return message.model_dump(by_alias=True)


def parse_client_message(data: dict[str, Any]) -> ChatMessage | PingMessage | None:
    """Parse a client message from JSON data.

    Args:
        data: Parsed JSON data

    Returns:
        Parsed message or None if invalid
    """
    msg_type = data.get("type")

    if msg_type == ClientMessageType.CHAT.value:
        try:
            return ChatMessage(body=data["body"])
        except (KeyError, ValidationError):
            return None

    elif msg_type == ClientMessageType.PING.value:
        return PingMessage()

    return None
