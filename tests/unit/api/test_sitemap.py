"""Tests for the server sitemap."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest

from ttrplobby.api.sitemap import STATIC_PATHS, collect_entries, render_sitemap

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def test_render_sitemap() -> None:
    xml = render_sitemap(
        [("https://www.ttrplobby.com/", None), ("https://www.ttrplobby.com/a?b=1&c=2", NOW)],
        NOW,
    )

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://www.ttrplobby.com/</loc><lastmod>2025-06-01T12:00:00+00:00</lastmod>" in xml
    # Locations are XML-escaped
    assert "a?b=1&amp;c=2" in xml
    assert xml.rstrip().endswith("</urlset>")


@pytest.mark.asyncio
async def test_collect_entries(make_game, make_room) -> None:
    game = make_game()
    room = make_room()

    with (
        patch("ttrplobby.api.sitemap.GameRepository") as games_cls,
        patch("ttrplobby.api.sitemap.LiveRoomRepository") as rooms_cls,
    ):
        games_cls.return_value.list_open_for_sitemap = AsyncMock(return_value=[game])
        rooms_cls.return_value.list_discoverable_open = AsyncMock(return_value=[room])
        entries = await collect_entries(AsyncMock())

    locations = [loc for loc, _ in entries]
    assert len(locations) == len(STATIC_PATHS) + 2
    assert locations[0] == "https://www.ttrplobby.com/"
    assert f"https://www.ttrplobby.com/schedule/{game.id}" in locations
    assert f"https://www.ttrplobby.com/live/{room.id}" in locations
