"""Integration tests for UserRepository username lookups."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.repositories.users import UserRepository


class TestUsernameExists:
    @pytest.mark.asyncio
    async def test_case_insensitive(self, db_session: AsyncSession, create_user):
        user = await create_user(username=f"Forever DM {uuid.uuid4().hex[:8]}")
        repository = UserRepository(db_session)

        assert await repository.username_exists(user.username.upper()) is True
        assert await repository.username_exists(user.username, exclude_user_id=user.id) is False

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session: AsyncSession, create_user):
        suffix = uuid.uuid4().hex[:8]
        await create_user(username=f"coolXdm{suffix}")
        repository = UserRepository(db_session)

        assert await repository.username_exists(f"cool_dm{suffix}") is False
        assert await repository.username_exists(f"cool%{suffix}") is False
