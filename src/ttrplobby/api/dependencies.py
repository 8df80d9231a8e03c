"""Service dependencies for API routes.

Routes depend on these factories rather than building services inline, so
tests can swap them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.repositories.notifications import NotificationRepository
from ttrplobby.db.session import get_db_session
from ttrplobby.live.service import LiveRoomService
from ttrplobby.scheduling.applications import ApplicationService
from ttrplobby.scheduling.games import GameService
from ttrplobby.services.accounts import AccountService
from ttrplobby.storage import StorageClient, get_storage_client

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


def get_storage() -> StorageClient:
    """Get the object storage client."""
    return get_storage_client()


async def get_live_service(
    session: SessionDep,
    storage: Annotated[StorageClient, Depends(get_storage)],
) -> LiveRoomService:
    return LiveRoomService(session, storage)


async def get_game_service(session: SessionDep) -> GameService:
    return GameService(session)


async def get_application_service(session: SessionDep) -> ApplicationService:
    return ApplicationService(session)


async def get_notification_repository(session: SessionDep) -> NotificationRepository:
    return NotificationRepository(session)


async def get_account_service(
    session: SessionDep,
    storage: Annotated[StorageClient, Depends(get_storage)],
) -> AccountService:
    return AccountService(session, storage)
