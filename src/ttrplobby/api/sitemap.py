"""Server-generated sitemap of public listings."""

from datetime import datetime
from xml.sax.saxutils import escape

from fastapi import APIRouter, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.api.dependencies import SessionDep
from ttrplobby.db.models import utcnow
from ttrplobby.db.repositories.games import GameRepository
from ttrplobby.db.repositories.live_rooms import LiveRoomRepository
from ttrplobby.settings import get_settings

router = APIRouter(tags=["sitemap"])

STATIC_PATHS = (
    "/",
    "/live/search",
    "/live/new",
    "/live/players",
    "/schedule",
    "/schedule/new",
    "/about",
    "/contact",
    "/privacy",
    "/terms",
)


def render_sitemap(entries: list[tuple[str, datetime | None]], now: datetime) -> str:
    """Render sitemap XML from (location, lastmod) pairs."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for loc, lastmod in entries:
        stamp = (lastmod or now).isoformat()
        lines.append(f"  <url><loc>{escape(loc)}</loc><lastmod>{stamp}</lastmod></url>")
    lines.append("</urlset>")
    return "\n".join(lines)


async def collect_entries(session: AsyncSession) -> list[tuple[str, datetime | None]]:
    """Static pages, open scheduled games and discoverable open live rooms."""
    base = get_settings().site_url.rstrip("/")
    entries: list[tuple[str, datetime | None]] = [(f"{base}{path}", None) for path in STATIC_PATHS]

    for game in await GameRepository(session).list_open_for_sitemap():
        entries.append((f"{base}/schedule/{game.id}", game.updated_at))

    for room in await LiveRoomRepository(session).list_discoverable_open():
        entries.append((f"{base}/live/{room.id}", room.updated_at))

    return entries


@router.get("/server-sitemap.xml", include_in_schema=False)
async def server_sitemap(session: SessionDep) -> Response:
    entries = await collect_entries(session)
    return Response(content=render_sitemap(entries, utcnow()), media_type="application/xml")
