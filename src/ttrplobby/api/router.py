"""Main API router."""

from fastapi import APIRouter

from ttrplobby.api.applications import router as applications_router
from ttrplobby.api.games import router as games_router
from ttrplobby.api.live import router as live_router
from ttrplobby.api.notifications import router as notifications_router
from ttrplobby.api.users import router as users_router
from ttrplobby.auth import get_auth_router

api_router = APIRouter()
api_router.include_router(live_router)
api_router.include_router(games_router)
api_router.include_router(applications_router)
api_router.include_router(notifications_router)
api_router.include_router(users_router)
api_router.include_router(get_auth_router())
