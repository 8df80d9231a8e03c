"""FastAPI dependencies for authentication.

Wires FastAPI-Users to the request database session and adds the DEV_MODE
bypass used for local development without a login flow.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi_users import FastAPIUsers
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.auth.backend import auth_backend
from ttrplobby.auth.users import UserManager, build_user_db
from ttrplobby.db.models import User
from ttrplobby.db.session import get_db_session
from ttrplobby.settings import get_settings

logger = logging.getLogger(__name__)


async def get_user_db_dep(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> AsyncGenerator[SQLAlchemyUserDatabase[User, int], None]:
    """Yield the FastAPI-Users database adapter for this request."""
    yield build_user_db(session)


async def get_user_manager_dep(
    user_db: Annotated[SQLAlchemyUserDatabase[User, int], Depends(get_user_db_dep)],
) -> AsyncGenerator[UserManager, None]:
    """Yield a UserManager bound to this request's session."""
    yield UserManager(user_db)


fastapi_users = FastAPIUsers[User, int](get_user_manager_dep, [auth_backend])

current_active_user = fastapi_users.current_user(active=True)
optional_current_user = fastapi_users.current_user(active=True, optional=True)


async def get_optional_user_with_dev_bypass(
    user: Annotated[User | None, Depends(optional_current_user)],
    user_manager: Annotated[UserManager, Depends(get_user_manager_dep)],
) -> User | None:
    """Get the current user, falling back to DEV_USER_ID in DEV_MODE.

    Returns:
        The authenticated user, the dev user, or None
    """
    if user is not None:
        return user

    settings = get_settings()
    if settings.dev_mode and settings.dev_user_id is not None:
        dev_user = await user_manager.user_db.get(settings.dev_user_id)
        if dev_user is not None:
            logger.debug(f"DEV_MODE: authenticating as user {dev_user.id}")
            return dev_user
        logger.warning(f"DEV_MODE: DEV_USER_ID={settings.dev_user_id} not found")

    return None


async def get_required_user_with_dev_bypass(
    user: Annotated[User | None, Depends(get_optional_user_with_dev_bypass)],
) -> User:
    """Get the current user or fail with 401.

    Raises:
        HTTPException: 401 if not authenticated
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user
