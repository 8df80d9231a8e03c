"""Authentication module for ttrplobby."""

from ttrplobby.auth.backend import auth_backend
from ttrplobby.auth.dependencies import (
    current_active_user,
    fastapi_users,
    get_optional_user_with_dev_bypass,
    get_required_user_with_dev_bypass,
)
from ttrplobby.auth.router import get_auth_router

__all__ = [
    "auth_backend",
    "current_active_user",
    "fastapi_users",
    "get_auth_router",
    "get_optional_user_with_dev_bypass",
    "get_required_user_with_dev_bypass",
]
