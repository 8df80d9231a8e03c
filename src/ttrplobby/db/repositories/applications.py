"""Application repository for database operations."""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Application, utcnow

logger = logging.getLogger(__name__)


class ApplicationRepository:
    """Repository for player applications to scheduled games."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: The database session to use
        """
        self.session = session

    async def create(
        self,
        game_id: uuid.UUID,
        player_id: int,
        answers: dict[str, Any],
        fit_score: int,
    ) -> Application:
        """Insert an application in "under_review" status."""
        application = Application(
            game_id=game_id,
            player_id=player_id,
            answers=answers,
            fit_score=fit_score,
            status="under_review",
        )
        self.session.add(application)
        await self.session.flush()
        await self.session.refresh(application, ["player"])
        logger.info(f"Player {player_id} applied to game {game_id} (fit {fit_score})")
        return application

    async def get_by_id(self, application_id: int) -> Application | None:
        """Get an application by ID."""
        result = await self.session.execute(
            select(Application).where(Application.id == application_id)
        )
        return result.scalar_one_or_none()

    async def get_for_player(self, game_id: uuid.UUID, player_id: int) -> Application | None:
        """Get a player's application to a game."""
        result = await self.session.execute(
            select(Application).where(
                Application.game_id == game_id, Application.player_id == player_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_game(self, game_id: uuid.UUID) -> list[Application]:
        """Get all applications to a game, best fit first."""
        result = await self.session.execute(
            select(Application)
            .where(Application.game_id == game_id)
            .order_by(Application.fit_score.desc(), Application.created_at.asc())
        )
        return list(result.scalars().all())

    async def set_decision(
        self, application: Application, status: str, decision: dict[str, Any]
    ) -> Application:
        """Record the host's decision."""
        application.status = status
        application.dm_decision = decision
        application.updated_at = utcnow()
        await self.session.flush()
        return application
