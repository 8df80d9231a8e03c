"""Authentication route registration.

Configures and exports the authentication router with all FastAPI-Users
routes, the session self-test and optional Google OAuth support.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from httpx_oauth.clients.google import GoogleOAuth2

from ttrplobby.auth.backend import auth_backend
from ttrplobby.auth.dependencies import fastapi_users, get_optional_user_with_dev_bypass
from ttrplobby.auth.rate_limit import (
    forgot_password_rate_limit,
    login_rate_limit,
    oauth_rate_limit,
    register_rate_limit,
    verify_rate_limit,
)
from ttrplobby.auth.schemas import UserCreate, UserRead
from ttrplobby.db.models import User
from ttrplobby.settings import get_settings


async def whoami(
    user: Annotated[User | None, Depends(get_optional_user_with_dev_bypass)],
) -> dict[str, Any]:
    """Report whether the request carries a valid session."""
    if user is None:
        return {"ok": False, "userId": None}
    return {"ok": True, "userId": user.id}


def get_auth_router() -> APIRouter:
    """Get the configured authentication router.

    Returns:
        APIRouter with all auth endpoints configured
    """
    router = APIRouter()

    # Login/logout routes share one router, so logout is limited too
    router.include_router(
        fastapi_users.get_auth_router(auth_backend),
        prefix="/auth",
        tags=["auth"],
        dependencies=[Depends(login_rate_limit)],
    )

    router.include_router(
        fastapi_users.get_register_router(UserRead, UserCreate),
        prefix="/auth",
        tags=["auth"],
        dependencies=[Depends(register_rate_limit)],
    )

    router.include_router(
        fastapi_users.get_reset_password_router(),
        prefix="/auth",
        tags=["auth"],
        dependencies=[Depends(forgot_password_rate_limit)],
    )

    router.include_router(
        fastapi_users.get_verify_router(UserRead),
        prefix="/auth",
        tags=["auth"],
        dependencies=[Depends(verify_rate_limit)],
    )

    router.add_api_route("/auth/whoami", whoami, methods=["GET"], tags=["auth"])

    # Google OAuth routes (conditional on configuration)
    settings = get_settings()
    if settings.google_oauth_enabled:
        google_oauth_client = GoogleOAuth2(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
        )

        router.include_router(
            fastapi_users.get_oauth_router(
                google_oauth_client,
                auth_backend,
                settings.secret_key,
                redirect_url=f"{settings.frontend_url}/auth/google/callback",
                associate_by_email=True,
                is_verified_by_default=True,  # Google verifies email addresses
            ),
            prefix="/auth/google",
            tags=["auth"],
            dependencies=[Depends(oauth_rate_limit)],
        )

    return router
