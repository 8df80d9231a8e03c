"""User API routes with DEV_MODE bypass support.

These routes replace FastAPI-Users' built-in /users routes to support
DEV_MODE authentication bypass for local development, and add profile,
avatar and account deletion endpoints.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.exc import IntegrityError

from ttrplobby.api.dependencies import get_account_service, get_game_service
from ttrplobby.api.errors import raise_for_error
from ttrplobby.api.games import serialize_game
from ttrplobby.auth.dependencies import (
    get_optional_user_with_dev_bypass,
    get_required_user_with_dev_bypass,
    get_user_manager_dep,
)
from ttrplobby.auth.rate_limit import upload_rate_limit
from ttrplobby.auth.schemas import PublicProfile, UserRead, UserUpdate
from ttrplobby.auth.users import UserManager
from ttrplobby.db.models import User
from ttrplobby.scheduling.games import GameService
from ttrplobby.services.accounts import AccountError, AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

CurrentUser = Annotated[User, Depends(get_required_user_with_dev_bypass)]
Accounts = Annotated[AccountService, Depends(get_account_service)]
Games = Annotated[GameService, Depends(get_game_service)]


@router.get("/me", response_model=UserRead)
async def get_current_user_info(user: CurrentUser) -> User:
    """Get the current user's information.

    This endpoint supports DEV_MODE bypass - when DEV_MODE=true and
    DEV_USER_ID is set, returns the dev user without authentication.

    Returns:
        Current user's data
    """
    return user


@router.patch("/me", response_model=UserRead)
async def update_current_user(
    update_data: UserUpdate,
    user: CurrentUser,
    user_manager: Annotated[UserManager, Depends(get_user_manager_dep)],
) -> User:
    """Update the current user's profile.

    Args:
        update_data: Fields to update
        user: Current authenticated user (or dev user)
        user_manager: User manager for handling updates

    Returns:
        Updated user data

    Raises:
        HTTPException: 400 if username is already taken
    """
    if update_data.username is not None and not await user_manager.is_username_available(
        update_data.username, exclude_user_id=user.id
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is already taken. Please choose another.",
        )

    try:
        return await user_manager.update(update_data, user, safe=True)
    except IntegrityError as e:
        # Two users raced for the same username
        error_str = str(e).lower()
        if "username" in error_str or "unique" in error_str:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is already taken. Please choose another.",
            ) from e
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Update failed due to a constraint violation.",
        ) from e


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_current_user(user: CurrentUser, accounts: Accounts) -> None:
    """Delete the caller's account and everything they own."""
    await accounts.delete_account(user.id)
    logger.info(f"User {user.id} deleted their account")


@router.post("/me/avatar", dependencies=[Depends(upload_rate_limit)])
async def upload_avatar(
    user: CurrentUser,
    accounts: Accounts,
    file: Annotated[UploadFile, File()],
) -> dict[str, Any]:
    """Upload a new avatar image."""
    data = await file.read()
    result = await accounts.upload_avatar(user, file.filename, file.content_type, data)
    if isinstance(result, AccountError):
        raise_for_error(result)
    return {"avatarUrl": result}


@router.get("/me/games/hosted")
async def my_hosted_games(user: CurrentUser, games: Games) -> dict[str, Any]:
    """Games the caller hosts."""
    return {"games": [serialize_game(g) for g in await games.hosted_by(user.id)]}


@router.get("/me/games/joined")
async def my_joined_games(user: CurrentUser, games: Games) -> dict[str, Any]:
    """Games the caller plays in."""
    return {"games": [serialize_game(g) for g in await games.joined_by(user.id)]}


@router.get("/username-available")
async def username_available(
    accounts: Accounts,
    user: Annotated[User | None, Depends(get_optional_user_with_dev_bypass)],
    username: Annotated[str, Query(min_length=1, max_length=50)],
) -> dict[str, Any]:
    """Check whether a username can be taken by the caller."""
    available = await accounts.username_available(username, user.id if user else None)
    return {"username": username, "available": available}


@router.get("/{user_id}", response_model=PublicProfile)
async def get_public_profile(user_id: int, accounts: Accounts) -> User:
    """Get another player's public profile."""
    result = await accounts.get_profile(user_id)
    if isinstance(result, AccountError):
        raise_for_error(result)
    return result
