"""Application workflow for scheduled games.

Players apply with a few answers and get a fit score; the host reviews
applications on a board and accepts or declines each one. Decisions notify
the player.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Application, Game, utcnow
from ttrplobby.db.repositories.applications import ApplicationRepository
from ttrplobby.db.repositories.games import GameRepository
from ttrplobby.db.repositories.notifications import NotificationRepository
from ttrplobby.scheduling.fit import compute_fit_score

logger = logging.getLogger(__name__)

BOARD_COLUMNS = ("under_review", "accepted", "declined")

DEFAULT_ACCEPT_BODY = "You have been added to the game. See the links below to join the table."
DEFAULT_DECLINE_BODY = (
    "Thanks for applying! Unfortunately the table is full or not a match this time."
)


@dataclass
class ApplicationError:
    """Error result from an application operation."""

    code: str
    message: str


@dataclass
class ApplicationBoard:
    """Applications of one game grouped by status."""

    game: Game
    columns: dict[str, list[Application]] = field(
        default_factory=lambda: {status: [] for status in BOARD_COLUMNS}
    )


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


class ApplicationService:
    """Application operations bound to one database session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.games = GameRepository(session)
        self.applications = ApplicationRepository(session)
        self.notifications = NotificationRepository(session)

    async def apply(
        self,
        game_id: uuid.UUID,
        player_id: int,
        timezone: str | None = None,
        experience: str | None = None,
        notes: str | None = None,
    ) -> Application | ApplicationError:
        """Submit an application.

        Returns:
            The new application or ApplicationError
        """
        game = await self.games.get_by_id(game_id)
        if game is None:
            return ApplicationError(code="not_found", message="Game not found")
        if game.host_id == player_id:
            return ApplicationError(code="own_game", message="You cannot apply to your own game")
        if game.status != "open":
            return ApplicationError(code="closed", message="This game is not accepting applications")
        if await self.applications.get_for_player(game_id, player_id) is not None:
            return ApplicationError(code="already_applied", message="You already applied to this game")

        fit_score = compute_fit_score(experience, timezone, game.time_zone, game.welcomes_new)
        answers = {"timezone": timezone, "experience": experience, "notes": notes}
        return await self.applications.create(game_id, player_id, answers, fit_score)

    async def board(self, game_id: uuid.UUID, host_id: int) -> ApplicationBoard | ApplicationError:
        """Group a game's applications by status (host only)."""
        game = await self._owned_game(game_id, host_id)
        if isinstance(game, ApplicationError):
            return game

        board = ApplicationBoard(game=game)
        for application in await self.applications.list_for_game(game_id):
            board.columns.setdefault(application.status, []).append(application)
        return board

    async def detail(
        self, game_id: uuid.UUID, application_id: int, host_id: int
    ) -> tuple[Game, Application] | ApplicationError:
        """Get one application of a game (host only)."""
        game = await self._owned_game(game_id, host_id)
        if isinstance(game, ApplicationError):
            return game
        application = await self.applications.get_by_id(application_id)
        if application is None or application.game_id != game_id:
            return ApplicationError(code="not_found", message="Application not found")
        return game, application

    async def accept(
        self,
        game_id: uuid.UUID,
        application_id: int,
        host_id: int,
        details: str | None = None,
        discord_invite: str | None = None,
        vtt_link: str | None = None,
    ) -> Application | ApplicationError:
        """Accept an application: seat the player and notify them."""
        found = await self.detail(game_id, application_id, host_id)
        if isinstance(found, ApplicationError):
            return found
        game, application = found

        await self.games.add_player(game_id, application.player_id)

        decision = {
            "accepted_at": utcnow().isoformat(),
            "details": _clean(details),
            "discord_invite": _clean(discord_invite),
            "vtt_link": _clean(vtt_link),
        }
        await self.applications.set_decision(application, "accepted", decision)

        await self.notifications.create(
            user_id=application.player_id,
            type="application_accepted",
            title=f"You're in! Accepted to {game.title or 'a game'}",
            body=_clean(details) or DEFAULT_ACCEPT_BODY,
            data={
                "game_id": str(game.id),
                "application_id": application.id,
                "discord_invite": decision["discord_invite"],
                "vtt_link": decision["vtt_link"],
            },
        )
        logger.info(f"Host {host_id} accepted application {application.id} for game {game_id}")
        return application

    async def decline(
        self,
        game_id: uuid.UUID,
        application_id: int,
        host_id: int,
        message: str | None = None,
    ) -> Application | ApplicationError:
        """Decline an application and notify the player."""
        found = await self.detail(game_id, application_id, host_id)
        if isinstance(found, ApplicationError):
            return found
        game, application = found

        decision: dict[str, Any] = {
            "declined_at": utcnow().isoformat(),
            "message": _clean(message),
        }
        await self.applications.set_decision(application, "declined", decision)

        await self.notifications.create(
            user_id=application.player_id,
            type="application_declined",
            title=f"Application update for {game.title or 'a game'}",
            body=_clean(message) or DEFAULT_DECLINE_BODY,
            data={"game_id": str(game.id), "application_id": application.id},
        )
        logger.info(f"Host {host_id} declined application {application.id} for game {game_id}")
        return application

    async def _owned_game(self, game_id: uuid.UUID, host_id: int) -> Game | ApplicationError:
        game = await self.games.get_by_id(game_id)
        if game is None:
            return ApplicationError(code="not_found", message="Game not found")
        if game.host_id != host_id:
            return ApplicationError(code="forbidden", message="Only the host can review applications")
        return game
