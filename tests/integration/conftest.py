"""Fixtures for integration tests.

These tests require a running PostgreSQL database with migrations applied
(``alembic upgrade head``). Each test runs inside a transaction that is
rolled back afterwards, so the database is left untouched.

To run integration tests:
    pytest tests/integration -v

To run only unit tests (faster, no database required):
    pytest tests/unit -v
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from ttrplobby.db.models import User
from ttrplobby.settings import get_settings


def pytest_collection_modifyitems(config, items):
    """Auto-mark all tests in this directory as integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def generate_test_id() -> str:
    """Generate a unique suffix to avoid collisions with existing rows."""
    return uuid.uuid4().hex[:8]


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session bound to a transaction that is rolled back.

    Creates a new engine for each test to avoid event loop issues with
    shared connection pools.
    """
    engine = create_async_engine(get_settings().database_url, echo=False)

    async with engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)
        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()

    await engine.dispose()


@pytest.fixture
def test_system() -> str:
    """A system label no real room uses, so matching only sees test rooms."""
    return f"Test System {generate_test_id()}"


@pytest.fixture
def create_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory that inserts a user."""

    async def _create(**overrides) -> User:
        suffix = generate_test_id()
        fields = {
            "email": f"test-{suffix}@example.com",
            "hashed_password": "x",
            "is_active": True,
            "is_verified": True,
            "is_superuser": False,
            "username": f"Test Player {suffix}",
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.flush()
        return user

    return _create
