"""Unit tests for the application workflow."""

import uuid
from unittest.mock import AsyncMock

import pytest

from ttrplobby.db.models import Application
from ttrplobby.scheduling.applications import (
    DEFAULT_ACCEPT_BODY,
    DEFAULT_DECLINE_BODY,
    ApplicationError,
    ApplicationService,
)


@pytest.fixture
def service() -> ApplicationService:
    svc = ApplicationService(AsyncMock())
    svc.games = AsyncMock()
    svc.applications = AsyncMock()
    svc.notifications = AsyncMock()
    svc.applications.get_for_player.return_value = None
    svc.applications.create.side_effect = lambda game_id, player_id, answers, fit_score: Application(
        id=11,
        game_id=game_id,
        player_id=player_id,
        answers=answers,
        fit_score=fit_score,
        status="under_review",
    )
    svc.applications.set_decision.side_effect = _set_decision
    return svc


def _set_decision(application: Application, status: str, decision: dict) -> Application:
    application.status = status
    application.dm_decision = decision
    return application


def make_application(game_id: uuid.UUID, player_id: int = 8, **overrides) -> Application:
    fields = {
        "id": 11,
        "game_id": game_id,
        "player_id": player_id,
        "status": "under_review",
        "fit_score": 80,
        "answers": {},
    }
    fields.update(overrides)
    return Application(**fields)


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_scores_and_stores_answers(self, service, make_game) -> None:
        game = make_game(host_id=3, time_zone="America/New_York", welcomes_new=True)
        service.games.get_by_id.return_value = game

        application = await service.apply(
            game.id, 8, timezone="america/new_york", experience="Some", notes="Bringing a bard"
        )

        assert application.fit_score == 80
        assert application.answers == {
            "timezone": "america/new_york",
            "experience": "Some",
            "notes": "Bringing a bard",
        }

    @pytest.mark.asyncio
    async def test_own_game(self, service, make_game) -> None:
        service.games.get_by_id.return_value = make_game(host_id=3)
        result = await service.apply(uuid.uuid4(), 3)
        assert result.code == "own_game"

    @pytest.mark.asyncio
    async def test_closed_game(self, service, make_game) -> None:
        service.games.get_by_id.return_value = make_game(host_id=3, status="full")
        result = await service.apply(uuid.uuid4(), 8)
        assert result.code == "closed"

    @pytest.mark.asyncio
    async def test_only_once(self, service, make_game) -> None:
        game = make_game(host_id=3)
        service.games.get_by_id.return_value = game
        service.applications.get_for_player.return_value = make_application(game.id)

        result = await service.apply(game.id, 8)

        assert isinstance(result, ApplicationError)
        assert result.code == "already_applied"
        service.applications.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_game(self, service) -> None:
        service.games.get_by_id.return_value = None
        assert (await service.apply(uuid.uuid4(), 8)).code == "not_found"


class TestBoard:
    @pytest.mark.asyncio
    async def test_groups_by_status(self, service, make_game) -> None:
        game = make_game(host_id=3)
        service.games.get_by_id.return_value = game
        service.applications.list_for_game.return_value = [
            make_application(game.id, 8, id=1),
            make_application(game.id, 9, id=2, status="accepted"),
            make_application(game.id, 10, id=3),
        ]

        board = await service.board(game.id, 3)

        assert [a.id for a in board.columns["under_review"]] == [1, 3]
        assert [a.id for a in board.columns["accepted"]] == [2]
        assert board.columns["declined"] == []

    @pytest.mark.asyncio
    async def test_host_only(self, service, make_game) -> None:
        service.games.get_by_id.return_value = make_game(host_id=3)
        assert (await service.board(uuid.uuid4(), 8)).code == "forbidden"

    @pytest.mark.asyncio
    async def test_detail_checks_game(self, service, make_game) -> None:
        game = make_game(host_id=3)
        service.games.get_by_id.return_value = game
        service.applications.get_by_id.return_value = make_application(uuid.uuid4())

        assert (await service.detail(game.id, 11, 3)).code == "not_found"


class TestDecisions:
    """Accepting and declining notify the player."""

    @pytest.mark.asyncio
    async def test_accept(self, service, make_game) -> None:
        game = make_game(host_id=3, title="Lost Mine")
        service.games.get_by_id.return_value = game
        service.applications.get_by_id.return_value = make_application(game.id, 8)

        application = await service.accept(
            game.id, 11, 3, details="  ", discord_invite="https://discord.gg/abc", vtt_link=None
        )

        assert application.status == "accepted"
        assert application.dm_decision["discord_invite"] == "https://discord.gg/abc"
        assert application.dm_decision["details"] is None
        assert "accepted_at" in application.dm_decision
        service.games.add_player.assert_awaited_once_with(game.id, 8)

        kwargs = service.notifications.create.await_args.kwargs
        assert kwargs["user_id"] == 8
        assert kwargs["type"] == "application_accepted"
        assert "Lost Mine" in kwargs["title"]
        assert kwargs["body"] == DEFAULT_ACCEPT_BODY
        assert kwargs["data"]["game_id"] == str(game.id)

    @pytest.mark.asyncio
    async def test_decline(self, service, make_game) -> None:
        game = make_game(host_id=3)
        service.games.get_by_id.return_value = game
        service.applications.get_by_id.return_value = make_application(game.id, 8)

        application = await service.decline(game.id, 11, 3, message="Table is full, sorry!")

        assert application.status == "declined"
        assert application.dm_decision["message"] == "Table is full, sorry!"
        service.games.add_player.assert_not_awaited()

        kwargs = service.notifications.create.await_args.kwargs
        assert kwargs["type"] == "application_declined"
        assert kwargs["body"] == "Table is full, sorry!"

    @pytest.mark.asyncio
    async def test_decline_default_message(self, service, make_game) -> None:
        game = make_game(host_id=3)
        service.games.get_by_id.return_value = game
        service.applications.get_by_id.return_value = make_application(game.id, 8)

        await service.decline(game.id, 11, 3)

        assert service.notifications.create.await_args.kwargs["body"] == DEFAULT_DECLINE_BODY

    @pytest.mark.asyncio
    async def test_non_host_cannot_decide(self, service, make_game) -> None:
        service.games.get_by_id.return_value = make_game(host_id=3)
        assert (await service.accept(uuid.uuid4(), 11, 8)).code == "forbidden"
        assert (await service.decline(uuid.uuid4(), 11, 8)).code == "forbidden"
        service.notifications.create.assert_not_awaited()
