"""Scheduled game repository for database operations."""

import logging
import uuid
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Game, GamePlayer, utcnow

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 60

SORT_ORDERS = {
    "soonest": (Game.scheduled_at.asc().nulls_last(), Game.created_at.desc()),
    "newest": (Game.created_at.desc(),),
    "updated": (Game.updated_at.desc(),),
}


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class GameRepository:
    """Repository for scheduled games and their memberships."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: The database session to use
        """
        self.session = session

    async def create(self, game: Game) -> Game:
        """Insert a game and seat its host with role "host"."""
        self.session.add(game)
        await self.session.flush()
        self.session.add(GamePlayer(game_id=game.id, user_id=game.host_id, role="host"))
        await self.session.flush()
        await self.session.refresh(game, ["players"])
        logger.info(f"Created game {game.id} for host {game.host_id}")
        return game

    async def get_by_id(self, game_id: uuid.UUID) -> Game | None:
        """Get a game by ID with its players loaded."""
        result = await self.session.execute(
            select(Game).where(Game.id == game_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, game_id: uuid.UUID) -> Game | None:
        """Get a game and lock its row until the transaction ends."""
        result = await self.session.execute(
            select(Game)
            .where(Game.id == game_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        q: str | None = None,
        system: str | None = None,
        status: str | None = "open",
        sort: str = "soonest",
        limit: int = SEARCH_LIMIT,
    ) -> list[Game]:
        """Search game listings.

        Args:
            q: Keyword matched against title, system and vibe (case-insensitive)
            system: Exact system filter
            status: Status filter, or None for any status
            sort: One of "soonest", "newest", "updated"
            limit: Maximum number of results

        Returns:
            Matching games
        """
        query = select(Game)
        if q:
            pattern = f"%{escape_like(q.strip())}%"
            query = query.where(
                or_(
                    Game.title.ilike(pattern, escape="\\"),
                    Game.system.ilike(pattern, escape="\\"),
                    Game.vibe.ilike(pattern, escape="\\"),
                )
            )
        if system:
            query = query.where(Game.system == system)
        if status:
            query = query.where(Game.status == status)

        query = query.order_by(*SORT_ORDERS.get(sort, SORT_ORDERS["soonest"])).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, game: Game, fields: dict[str, Any]) -> Game:
        """Apply field changes to a game."""
        for key, value in fields.items():
            setattr(game, key, value)
        game.updated_at = utcnow()
        await self.session.flush()
        return game

    async def delete(self, game: Game) -> None:
        """Delete a game (memberships and applications cascade)."""
        await self.session.delete(game)
        await self.session.flush()
        logger.info(f"Deleted game {game.id}")

    async def count_players(self, game_id: uuid.UUID) -> int:
        """Count members of a game, host included."""
        result = await self.session.execute(
            select(func.count()).select_from(GamePlayer).where(GamePlayer.game_id == game_id)
        )
        return result.scalar_one()

    async def is_member(self, game_id: uuid.UUID, user_id: int) -> bool:
        """Check if a user is a member of a game."""
        result = await self.session.execute(
            select(GamePlayer.user_id).where(
                GamePlayer.game_id == game_id, GamePlayer.user_id == user_id
            )
        )
        return result.first() is not None

    async def add_player(self, game_id: uuid.UUID, user_id: int, role: str = "player") -> None:
        """Add a member. Does nothing if already a member."""
        await self.session.execute(
            insert(GamePlayer)
            .values(game_id=game_id, user_id=user_id, role=role, created_at=utcnow())
            .on_conflict_do_nothing(index_elements=["game_id", "user_id"])
        )

    async def remove_player(self, game_id: uuid.UUID, user_id: int) -> bool:
        """Remove a member.

        Returns:
            True if a membership was removed
        """
        result = await self.session.execute(
            delete(GamePlayer).where(GamePlayer.game_id == game_id, GamePlayer.user_id == user_id)
        )
        return result.rowcount > 0

    async def list_players(self, game_id: uuid.UUID) -> list[GamePlayer]:
        """Get the roster of a game, host first then by join time."""
        result = await self.session.execute(
            select(GamePlayer)
            .where(GamePlayer.game_id == game_id)
            .order_by((GamePlayer.role == "host").desc(), GamePlayer.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_hosted(self, user_id: int) -> list[Game]:
        """Get games hosted by a user, most recently updated first."""
        result = await self.session.execute(
            select(Game).where(Game.host_id == user_id).order_by(Game.updated_at.desc())
        )
        return list(result.scalars().all())

    async def list_joined(self, user_id: int) -> list[Game]:
        """Get games a user plays in (not hosts), soonest first."""
        result = await self.session.execute(
            select(Game)
            .join(GamePlayer, GamePlayer.game_id == Game.id)
            .where(GamePlayer.user_id == user_id, Game.host_id != user_id)
            .order_by(Game.scheduled_at.asc().nulls_last())
        )
        return list(result.scalars().all())

    async def list_open_for_sitemap(self, limit: int = 1000) -> list[Game]:
        """Get open games for the sitemap, most recently updated first."""
        result = await self.session.execute(
            select(Game)
            .where(Game.status == "open")
            .order_by(Game.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
