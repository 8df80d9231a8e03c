"""Integration tests for scheduled game, application and notification repositories."""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Game
from ttrplobby.db.repositories.applications import ApplicationRepository
from ttrplobby.db.repositories.games import GameRepository
from ttrplobby.db.repositories.notifications import NotificationRepository


async def new_game(repository: GameRepository, host_id: int, **overrides) -> Game:
    fields = {"host_id": host_id, "title": "Untitled game", "system": "D&D 5e", "seats": 4}
    fields.update(overrides)
    return await repository.create(Game(**fields))


class TestGameSearch:
    @pytest.mark.asyncio
    async def test_keyword_matches_title_system_and_vibe(
        self, db_session: AsyncSession, create_user
    ):
        repository = GameRepository(db_session)
        host = await create_user()
        token = uuid.uuid4().hex[:10]
        by_title = await new_game(repository, host.id, title=f"Curse of {token}")
        by_vibe = await new_game(repository, host.id, vibe=f"spooky {token.upper()}")
        await new_game(repository, host.id, title="Something else")

        found = {g.id for g in await repository.search(q=token)}

        assert found == {by_title.id, by_vibe.id}

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session: AsyncSession, create_user):
        repository = GameRepository(db_session)
        host = await create_user()
        token = uuid.uuid4().hex[:10]
        literal = await new_game(repository, host.id, title=f"{token} 100% homebrew")
        await new_game(repository, host.id, title=f"{token} 100 homebrew")

        found = [g.id for g in await repository.search(q=f"{token} 100%")]

        assert found == [literal.id]

    @pytest.mark.asyncio
    async def test_status_filter(self, db_session: AsyncSession, create_user):
        repository = GameRepository(db_session)
        host = await create_user()
        token = uuid.uuid4().hex[:10]
        await new_game(repository, host.id, title=token)
        full = await new_game(repository, host.id, title=token, status="full")

        assert [g.id for g in await repository.search(q=token, status="full")] == [full.id]
        assert len(await repository.search(q=token, status=None)) == 2


class TestMembership:
    @pytest.mark.asyncio
    async def test_host_is_seated(self, db_session: AsyncSession, create_user):
        repository = GameRepository(db_session)
        host = await create_user()
        game = await new_game(repository, host.id)

        roster = await repository.list_players(game.id)
        assert [(p.user_id, p.role) for p in roster] == [(host.id, "host")]

    @pytest.mark.asyncio
    async def test_add_and_remove_player(self, db_session: AsyncSession, create_user):
        repository = GameRepository(db_session)
        host, player = await create_user(), await create_user()
        game = await new_game(repository, host.id)

        await repository.add_player(game.id, player.id)
        await repository.add_player(game.id, player.id)
        assert await repository.count_players(game.id) == 2
        assert await repository.is_member(game.id, player.id)

        assert await repository.remove_player(game.id, player.id) is True
        assert await repository.remove_player(game.id, player.id) is False
        assert not await repository.is_member(game.id, player.id)

    @pytest.mark.asyncio
    async def test_hosted_and_joined(self, db_session: AsyncSession, create_user):
        repository = GameRepository(db_session)
        host, player = await create_user(), await create_user()
        game = await new_game(repository, host.id)
        await repository.add_player(game.id, player.id)

        assert [g.id for g in await repository.list_hosted(host.id)] == [game.id]
        assert await repository.list_joined(host.id) == []
        assert [g.id for g in await repository.list_joined(player.id)] == [game.id]


class TestApplications:
    @pytest.mark.asyncio
    async def test_one_application_per_player(self, db_session: AsyncSession, create_user):
        games = GameRepository(db_session)
        applications = ApplicationRepository(db_session)
        host, player = await create_user(), await create_user()
        game = await new_game(games, host.id)

        application = await applications.create(game.id, player.id, {"experience": "new"}, 80)
        assert application.status == "under_review"
        assert (await applications.get_for_player(game.id, player.id)).id == application.id

        with pytest.raises(IntegrityError):
            async with db_session.begin_nested():
                await applications.create(game.id, player.id, {}, 10)

    @pytest.mark.asyncio
    async def test_list_best_fit_first(self, db_session: AsyncSession, create_user):
        games = GameRepository(db_session)
        applications = ApplicationRepository(db_session)
        game = await new_game(games, (await create_user()).id)
        low = await applications.create(game.id, (await create_user()).id, {}, 20)
        high = await applications.create(game.id, (await create_user()).id, {}, 90)

        listed = await applications.list_for_game(game.id)

        assert [a.id for a in listed] == [high.id, low.id]


class TestNotifications:
    @pytest.mark.asyncio
    async def test_mark_read_only_own(self, db_session: AsyncSession, create_user):
        repository = NotificationRepository(db_session)
        owner, stranger = await create_user(), await create_user()
        mine = await repository.create(owner.id, "application_accepted", "You're in!")
        theirs = await repository.create(stranger.id, "application_accepted", "You're in!")

        assert await repository.mark_read(owner.id, [mine.id, theirs.id]) == 1
        assert await repository.mark_read(owner.id, []) == 0

        listed = await repository.list_for_user(stranger.id)
        assert [(n.id, n.read) for n in listed] == [(theirs.id, False)]

    @pytest.mark.asyncio
    async def test_delete_only_own(self, db_session: AsyncSession, create_user):
        repository = NotificationRepository(db_session)
        owner, stranger = await create_user(), await create_user()
        notification = await repository.create(owner.id, "new_application", "New applicant")

        assert await repository.delete(stranger.id, notification.id) is False
        assert await repository.delete(owner.id, notification.id) is True
