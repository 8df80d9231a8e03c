"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ttrplobby.api.router import api_router
from ttrplobby.api.sitemap import router as sitemap_router
from ttrplobby.auth.rate_limit import limiter
from ttrplobby.db.session import async_session_factory
from ttrplobby.live.service import run_stale_room_sweeper
from ttrplobby.settings import get_settings
from ttrplobby.ws.live_handler import handle_live_websocket


def setup_logging() -> None:
    """Configure logging for the application."""
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("ttrplobby").setLevel(logging.DEBUG)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.INFO)


# Set up logging on import
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logger.info(f"Starting ttrplobby server (dev_mode={settings.dev_mode})")

    sweeper: asyncio.Task[None] | None = None
    if settings.stale_room_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            run_stale_room_sweeper(
                async_session_factory,
                settings.stale_room_threshold_seconds,
                settings.stale_room_sweep_interval_seconds,
            )
        )

    yield

    logger.info("Shutting down ttrplobby server")
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="ttrplobby",
    description="Find a tabletop RPG table now or later",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
# In dev mode, allow localhost. In production, allow the configured frontend URL.
settings = get_settings()
cors_origins = (
    ["http://localhost:3000", "http://127.0.0.1:3000"]
    if settings.dev_mode
    else [settings.frontend_url]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "ttrplobby API", "version": "0.1.0"}


# Include API routers
app.include_router(api_router, prefix="/api")
app.include_router(sitemap_router)


# WebSocket endpoint for live room channels
@app.websocket("/ws/live/{room_id}")
async def live_websocket_endpoint(
    websocket: WebSocket,
    room_id: str,
    token: str | None = None,
) -> None:
    """WebSocket endpoint for live room presence and chat."""
    await handle_live_websocket(websocket, room_id, token)
