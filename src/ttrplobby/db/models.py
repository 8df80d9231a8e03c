"""Database models for ttrplobby."""

import uuid
from datetime import UTC, datetime

from fastapi_users.db import SQLAlchemyBaseOAuthAccountTable, SQLAlchemyBaseUserTable
from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class OAuthAccount(SQLAlchemyBaseOAuthAccountTable[int], Base):
    """OAuth account linked to a user."""

    __tablename__ = "oauth_accounts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )


class User(SQLAlchemyBaseUserTable[int], Base):
    """User account and public profile.

    Attributes:
        id: Unique identifier
        email: Login email (inherited from FastAPI-Users)
        hashed_password: Password hash (inherited from FastAPI-Users)
        username: Unique handle (auto-generated if not provided)
        display_name: Name shown in lobbies; falls back to username
        avatar_url: Public URL of the uploaded avatar
        bio: Free-form profile text
        time_zone: IANA time zone name chosen by the user
        created_at: Account creation timestamp
        updated_at: Last profile change
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(80), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    oauth_accounts: Mapped[list[OAuthAccount]] = relationship("OAuthAccount", lazy="joined")

    @property
    def name(self) -> str:
        """Name to show other players."""
        return self.display_name or self.username or "Player"


class LiveRoom(Base):
    """An instant game lobby that players can quick-join.

    Attributes:
        id: Unique identifier (used in room URLs)
        host_id: User who opened the room
        status: "open", "closed" (superseded or stale) or "ended" (host ended)
        system: Canonical game system label (e.g. "D&D 5e (2014)")
        length_minutes: Planned session length
        max_players: Seat capacity including the host
        new_player_friendly: Whether the table welcomes new players
        is_18_plus: Mature content flag
        is_private: Private rooms are reachable by direct link only
        title, vibe: Optional host-provided description
        discord_url, game_url: Optional external links (voice, VTT)
        poster_url: Public URL of the poster image
        poster_storage_path: Object storage key of the poster
        time_zone: Host time zone
    """

    __tablename__ = "live_rooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    host_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    system: Mapped[str] = mapped_column(String(80), nullable=False)
    length_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    new_player_friendly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_18_plus: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    vibe: Mapped[str | None] = mapped_column(String(200), nullable=True)
    discord_url: Mapped[str | None] = mapped_column(String, nullable=True)
    game_url: Mapped[str | None] = mapped_column(String, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(String, nullable=True)
    poster_storage_path: Mapped[str | None] = mapped_column(String, nullable=True)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    players: Mapped[list["LiveRoomPlayer"]] = relationship(
        "LiveRoomPlayer", back_populates="room", cascade="all, delete-orphan", lazy="selectin"
    )

    # Composite index for the quick-join query
    __table_args__ = (
        Index(
            "ix_live_rooms_matching",
            "status",
            "system",
            "length_minutes",
            "created_at",
        ),
    )


class LiveRoomPlayer(Base):
    """A seat taken in a live room."""

    __tablename__ = "live_room_players"

    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("live_rooms.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="player")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    room: Mapped["LiveRoom"] = relationship("LiveRoom", back_populates="players")
    user: Mapped["User"] = relationship("User", lazy="selectin")


class LivePresence(Base):
    """Heartbeat record for a user in a live room.

    Location fields are only exposed when share_location is set.
    """

    __tablename__ = "live_presence"

    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("live_rooms.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    share_location: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    user: Mapped["User"] = relationship("User", lazy="selectin")


class LobbyMessage(Base):
    """A chat message posted in a live room."""

    __tablename__ = "lobby_messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("live_rooms.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (Index("ix_lobby_messages_room_created", "room_id", "created_at"),)


class Game(Base):
    """A scheduled game listing.

    Attributes:
        id: Unique identifier
        host_id: Game master who posted the listing
        title: Listing title
        system: Game system
        poster_url: Public URL of the poster image
        scheduled_at: When the session is planned
        status: "draft", "open", "full", "completed" or "cancelled"
        seats: Seat capacity including the host
        length_min: Planned session length in minutes
        vibe: Short tone description
        description: Long description
        welcomes_new: Whether new players are welcome
        is_mature: Mature content flag
        time_zone: Time zone the session runs in
    """

    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    host_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="Untitled game")
    system: Mapped[str | None] = mapped_column(String(80), nullable=True)
    poster_url: Mapped[str | None] = mapped_column(String, nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open", index=True)
    seats: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    length_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vibe: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    welcomes_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_mature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    players: Mapped[list["GamePlayer"]] = relationship(
        "GamePlayer", back_populates="game", cascade="all, delete-orphan", lazy="selectin"
    )


class GamePlayer(Base):
    """Membership of a user in a scheduled game."""

    __tablename__ = "game_players"

    game_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="player")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    game: Mapped["Game"] = relationship("Game", back_populates="players")
    user: Mapped["User"] = relationship("User", lazy="selectin")


class Application(Base):
    """A player's application to a scheduled game.

    Attributes:
        status: "under_review", "accepted" or "declined"
        fit_score: 0-100 score computed at submission
        answers: Player answers (timezone, experience, notes)
        dm_decision: Host decision payload (links, message, timestamps)
    """

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    game_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="under_review")
    fit_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answers: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    dm_decision: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    player: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_applications_game_player"),
    )


class Notification(Base):
    """An in-app notification for a user."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)
