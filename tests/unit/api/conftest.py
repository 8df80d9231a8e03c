"""Fixtures for API route tests.

Routes run against mocked services; the database session and the current
user are swapped through ``app.dependency_overrides``.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from ttrplobby.auth.dependencies import get_required_user_with_dev_bypass
from ttrplobby.db.models import User
from ttrplobby.db.session import get_db_session
from ttrplobby.main import app


async def _fake_session() -> AsyncGenerator[AsyncMock, None]:
    yield AsyncMock()


@pytest.fixture
def current_user(make_user: Callable[..., User]) -> User:
    return make_user(1, display_name="Game Master")


@pytest.fixture
def client(current_user: User) -> Generator[TestClient, None, None]:
    """Test client authenticated as current_user."""
    app.dependency_overrides[get_db_session] = _fake_session
    app.dependency_overrides[get_required_user_with_dev_bypass] = lambda: current_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client() -> Generator[TestClient, None, None]:
    """Test client without a logged-in user."""
    app.dependency_overrides[get_db_session] = _fake_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def connections(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the live room connection manager used by the routes."""
    manager = MagicMock()
    manager.broadcast = AsyncMock()
    manager.close_user = AsyncMock()
    manager.close_room = AsyncMock()
    monkeypatch.setattr("ttrplobby.api.live.live_connection_manager", manager)
    return manager
