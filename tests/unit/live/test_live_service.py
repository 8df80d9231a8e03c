"""Unit tests for LiveRoomService with a mocked repository."""

import asyncio
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ttrplobby.db.models import LivePresence, LobbyMessage
from ttrplobby.live.config import DEFAULT_SEATS
from ttrplobby.live.matching import MatchCriteria
from ttrplobby.live.service import (
    MAX_MESSAGE_LENGTH,
    MAX_POSTER_BYTES,
    SEAT_ATTEMPTS,
    LiveError,
    LiveRoomService,
    NewLiveRoom,
    close_stale_rooms,
    run_stale_room_sweeper,
)
from ttrplobby.storage import InMemoryStorageClient


@pytest.fixture
def rooms() -> AsyncMock:
    """Mocked LiveRoomRepository."""
    repo = AsyncMock()
    repo.create.side_effect = lambda room: room
    repo.is_member.return_value = False
    repo.count_players.return_value = 1
    return repo


@pytest.fixture
def storage() -> InMemoryStorageClient:
    return InMemoryStorageClient()


@pytest.fixture
def service(rooms: AsyncMock, storage: InMemoryStorageClient) -> LiveRoomService:
    svc = LiveRoomService(AsyncMock(), storage)
    svc.rooms = rooms
    return svc


def new_room(**overrides) -> NewLiveRoom:
    fields = {"system": "dnd5e", "length_minutes": 120}
    fields.update(overrides)
    return NewLiveRoom(**fields)


class TestCreate:
    """Tests for opening a live room."""

    @pytest.mark.asyncio
    async def test_create_normalizes_fields(self, service, rooms) -> None:
        room = await service.create(
            5, new_room(max_players=50, title="  ", vibe=" Spooky ", discord_url="")
        )

        assert not isinstance(room, LiveError)
        assert room.host_id == 5
        assert room.status == "open"
        assert room.system == "D&D 5e (2014)"
        assert room.max_players == 10
        assert room.title is None
        assert room.vibe == "Spooky"
        assert room.discord_url is None

    @pytest.mark.asyncio
    async def test_create_non_finite_seats_use_default(self, service, rooms) -> None:
        room = await service.create(5, new_room(max_players="nan"))
        assert room.max_players == DEFAULT_SEATS

    @pytest.mark.asyncio
    async def test_create_closes_previous_rooms(self, service, rooms) -> None:
        await service.create(5, new_room())
        rooms.close_open_rooms_for_host.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"system": "Pathfinder"}, "invalid_system"),
            ({"length_minutes": 45}, "invalid_length"),
            ({"new_player_friendly": "true"}, "invalid_npf"),
            ({"is_18_plus": None}, "invalid_adult"),
            ({"is_private": 1}, "invalid_privacy"),
        ],
    )
    async def test_create_validation(self, service, rooms, overrides, code) -> None:
        result = await service.create(5, new_room(**overrides))

        assert isinstance(result, LiveError)
        assert result.code == code
        rooms.close_open_rooms_for_host.assert_not_awaited()
        rooms.create.assert_not_awaited()


class TestQuickJoin:
    """Tests for quick join matching and seating."""

    @pytest.mark.asyncio
    async def test_no_match(self, service, rooms) -> None:
        rooms.find_quick_join_match.return_value = None
        result = await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 120))

        assert isinstance(result, LiveError)
        assert result.code == "no_match"

    @pytest.mark.asyncio
    async def test_strict_filters(self, service, rooms) -> None:
        rooms.find_quick_join_match.return_value = None
        exclude = uuid.uuid4()
        await service.quick_join(
            7,
            MatchCriteria("dnd-5e-2014", 60, new_player_friendly=False, adult=True, tolerance_minutes=60),
            exclude=exclude,
        )

        rooms.find_quick_join_match.assert_awaited_once_with(
            7, "D&D 5e (2014)", 15, 120, False, True, exclude
        )

    @pytest.mark.asyncio
    async def test_ignore_flags_drops_flag_filters(self, service, rooms) -> None:
        rooms.find_quick_join_match.return_value = None
        await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 120).relaxed())

        args = rooms.find_quick_join_match.await_args.args
        assert args[4] is None
        assert args[5] is None

    @pytest.mark.asyncio
    async def test_seats_in_matched_room(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.find_quick_join_match.return_value = room
        rooms.get_for_update.return_value = room
        rooms.get_by_id.return_value = room

        result = await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 120))

        assert result is room
        rooms.add_player.assert_awaited_once_with(room.id, 7)

    @pytest.mark.asyncio
    async def test_retries_when_room_fills(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1, max_players=2)
        rooms.find_quick_join_match.return_value = room
        rooms.get_for_update.return_value = room
        rooms.count_players.return_value = 2

        result = await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 120))

        assert isinstance(result, LiveError)
        assert result.code == "no_match"
        assert rooms.find_quick_join_match.await_count == SEAT_ATTEMPTS
        rooms.add_player.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_criteria(self, service, rooms) -> None:
        result = await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 100))
        assert result.code == "invalid_length"

        result = await service.quick_join(7, MatchCriteria("D&D 5e (2014)", 120, tolerance_minutes=-1))
        assert result.code == "invalid_tolerance"
        rooms.find_quick_join_match.assert_not_awaited()


class TestMatchAndJoin:
    @pytest.mark.asyncio
    async def test_no_game_found(self, service, rooms) -> None:
        rooms.find_any_match.return_value = None
        result = await service.match_and_join(7)
        assert result.code == "no_game_found"
        rooms.find_any_match.assert_awaited_once_with(7, None, None, None, None)

    @pytest.mark.asyncio
    async def test_resolves_system(self, service, rooms) -> None:
        rooms.find_any_match.return_value = None
        await service.match_and_join(7, system="dnd5e", adult=False)
        rooms.find_any_match.assert_awaited_once_with(7, "D&D 5e (2014)", None, False, None)

    @pytest.mark.asyncio
    async def test_unknown_system(self, service, rooms) -> None:
        result = await service.match_and_join(7, system="Mothership")
        assert result.code == "invalid_system"


class TestJoin:
    """Tests for seating by direct link."""

    @pytest.mark.asyncio
    async def test_not_found(self, service, rooms) -> None:
        rooms.get_for_update.return_value = None
        result = await service.join(uuid.uuid4(), 7)
        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_closed(self, service, rooms, make_room) -> None:
        rooms.get_for_update.return_value = make_room(status="ended")
        result = await service.join(uuid.uuid4(), 7)
        assert result.code == "closed"

    @pytest.mark.asyncio
    async def test_full(self, service, rooms, make_room) -> None:
        rooms.get_for_update.return_value = make_room(max_players=3)
        rooms.count_players.return_value = 3
        result = await service.join(uuid.uuid4(), 7)
        assert result.code == "full"

    @pytest.mark.asyncio
    async def test_private_rooms_can_be_joined_by_link(self, service, rooms, make_room) -> None:
        room = make_room(is_private=True)
        rooms.get_for_update.return_value = room
        rooms.get_by_id.return_value = room
        assert await service.join(room.id, 7) is room

    @pytest.mark.asyncio
    async def test_idempotent_for_members(self, service, rooms, make_room) -> None:
        room = make_room(max_players=2)
        rooms.get_for_update.return_value = room
        rooms.is_member.return_value = True
        rooms.count_players.return_value = 2

        assert await service.join(room.id, 7) is room
        rooms.add_player.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_host_is_already_seated(self, service, rooms, make_room) -> None:
        room = make_room(host_id=7)
        rooms.get_for_update.return_value = room
        assert await service.join(room.id, 7) is room
        rooms.add_player.assert_not_awaited()


class TestLeaveAndKick:
    """Tests for leaving and host moderation."""

    @pytest.mark.asyncio
    async def test_leave(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        rooms.remove_player.return_value = True
        assert await service.leave(room.id, 7) is True
        rooms.remove_player.assert_awaited_once_with(room.id, 7)

    @pytest.mark.asyncio
    async def test_host_cannot_leave(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        result = await service.leave(room.id, 1)
        assert result.code == "host_must_end"
        rooms.remove_player.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_kick(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        rooms.remove_player.return_value = True
        assert await service.kick(room.id, 1, 7) is True

    @pytest.mark.asyncio
    async def test_only_host_kicks(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        result = await service.kick(uuid.uuid4(), 2, 7)
        assert result.code == "forbidden"

    @pytest.mark.asyncio
    async def test_host_cannot_kick_self(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        result = await service.kick(uuid.uuid4(), 1, 1)
        assert result.code == "invalid_target"

    @pytest.mark.asyncio
    async def test_kick_non_member(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        rooms.remove_player.return_value = False
        result = await service.kick(uuid.uuid4(), 1, 7)
        assert result.code == "not_member"


class TestEnd:
    """Tests for ending a room."""

    @pytest.mark.asyncio
    async def test_end_removes_poster(self, service, rooms, storage, make_room) -> None:
        storage.upload_bytes("posters/1/p.png", b"img", "image/png")
        room = make_room(host_id=1, poster_storage_path="posters/1/p.png")
        rooms.get_by_id.return_value = room

        assert await service.end(room.id, 1) is room
        rooms.end_room.assert_awaited_once_with(room)
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_only_host_ends(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        result = await service.end(uuid.uuid4(), 2)
        assert result.code == "forbidden"
        rooms.end_room.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_block_end(self, rooms, make_room) -> None:
        broken = MagicMock()
        broken.delete.side_effect = RuntimeError("bucket unavailable")
        service = LiveRoomService(AsyncMock(), broken)
        service.rooms = rooms
        room = make_room(host_id=1, poster_storage_path="posters/1/p.png")
        rooms.get_by_id.return_value = room

        assert await service.end(room.id, 1) is room
        rooms.end_room.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_end_all_hosted(self, service, rooms, make_room) -> None:
        rooms.list_hosted_open.return_value = [make_room(host_id=1), make_room(host_id=1)]
        assert await service.end_all_hosted(1) == 2
        assert rooms.end_room.await_count == 2


class TestPresence:
    """Tests for heartbeats and the players map."""

    @pytest.mark.asyncio
    async def test_heartbeat_requires_room(self, service, rooms) -> None:
        rooms.get_by_id.return_value = None
        result = await service.heartbeat(uuid.uuid4(), 7)
        assert result.code == "not_found"
        rooms.upsert_presence.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_heartbeat(self, service, rooms, make_room) -> None:
        room = make_room()
        rooms.get_by_id.return_value = room
        assert await service.heartbeat(room.id, 7, share_location=True, lat=1.5, lon=2.5) is True
        rooms.upsert_presence.assert_awaited_once_with(
            room.id, 7, share_location=True, lat=1.5, lon=2.5, city=None, country=None
        )

    @pytest.mark.asyncio
    async def test_players_map(self, service, rooms, make_user) -> None:
        seen = datetime(2025, 6, 1, 18, 0, tzinfo=UTC)
        room_a, room_b = uuid.uuid4(), uuid.uuid4()
        rooms.list_recent_presence.return_value = [
            LivePresence(
                room_id=room_a, user_id=7, last_seen_at=seen, share_location=True,
                lat=40.7, lon=-74.0, city="New York", country="US", user=make_user(7),
            ),
            # Older row for the same player in another room
            LivePresence(
                room_id=room_b, user_id=7, last_seen_at=seen, share_location=True,
                lat=1.0, lon=1.0, user=make_user(7),
            ),
            LivePresence(
                room_id=room_b, user_id=8, last_seen_at=seen, share_location=False,
                lat=51.5, lon=-0.1, city="London", user=make_user(8, display_name="Vex"),
            ),
        ]

        points = await service.players_map(120)

        assert [p.user_id for p in points] == [7, 8]
        assert points[0].room_id == room_a
        assert (points[0].lat, points[0].lon, points[0].city) == (40.7, -74.0, "New York")
        assert points[1].display_name == "Vex"
        assert points[1].lat is None
        assert points[1].city is None


class TestUploadPoster:
    """Tests for poster uploads."""

    @pytest.mark.asyncio
    async def test_upload(self, service, storage) -> None:
        result = await service.upload_poster(7, "map.png", "image/png", b"png-bytes")

        url, path = result
        assert path.startswith("posters/7/")
        assert path.endswith(".png")
        assert url == storage.public_url(path)
        assert storage.objects[path] == b"png-bytes"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content_type,data,code",
        [
            ("application/pdf", b"x", "invalid_file"),
            (None, b"x", "invalid_file"),
            ("image/png", b"", "invalid_file"),
            ("image/png", b"x" * (MAX_POSTER_BYTES + 1), "file_too_large"),
        ],
    )
    async def test_rejected(self, service, storage, content_type, data, code) -> None:
        result = await service.upload_poster(7, "f", content_type, data)
        assert result.code == code
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_without_storage(self, rooms) -> None:
        service = LiveRoomService(AsyncMock())
        result = await service.upload_poster(7, "map.png", "image/png", b"x")
        assert result.code == "storage_unavailable"


class TestChat:
    """Tests for room chat."""

    @pytest.mark.asyncio
    async def test_post(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        rooms.add_message.side_effect = lambda room_id, user_id, body: LobbyMessage(
            room_id=room_id, user_id=user_id, body=body
        )

        message = await service.post_message(room.id, 1, "  Roll initiative!  ")
        assert message.body == "Roll initiative!"

    @pytest.mark.asyncio
    async def test_post_truncates(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        await service.post_message(room.id, 1, "a" * (MAX_MESSAGE_LENGTH + 50))
        body = rooms.add_message.await_args.args[2]
        assert len(body) == MAX_MESSAGE_LENGTH

    @pytest.mark.asyncio
    async def test_blank_is_ignored(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        assert await service.post_message(uuid.uuid4(), 1, "   ") is None
        rooms.add_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_members_only(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1)
        rooms.is_member.return_value = False

        result = await service.post_message(uuid.uuid4(), 7, "hi")
        assert result.code == "forbidden"
        result = await service.list_messages(uuid.uuid4(), 7)
        assert result.code == "forbidden"

    @pytest.mark.asyncio
    async def test_closed_room(self, service, rooms, make_room) -> None:
        rooms.get_by_id.return_value = make_room(host_id=1, status="ended")
        result = await service.post_message(uuid.uuid4(), 1, "hi")
        assert result.code == "closed"

    @pytest.mark.asyncio
    async def test_list_limit_is_clamped(self, service, rooms, make_room) -> None:
        room = make_room(host_id=1)
        rooms.get_by_id.return_value = room
        rooms.list_messages.return_value = []

        await service.list_messages(room.id, 1, limit=10_000)
        rooms.list_messages.assert_awaited_once_with(room.id, limit=500)


class TestStaleRooms:
    """Tests for the stale room sweeper."""

    @pytest.mark.asyncio
    async def test_close_stale_rooms_commits(self) -> None:
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = session
        closed_id = uuid.uuid4()

        with patch("ttrplobby.live.service.LiveRoomRepository") as repo_cls:
            repo_cls.return_value.close_stale_rooms = AsyncMock(return_value=[closed_id])
            closed = await close_stale_rooms(factory, 120)

        assert closed == [closed_id]
        cutoff = repo_cls.return_value.close_stale_rooms.await_args.args[0]
        assert (datetime.now(UTC) - cutoff).total_seconds() >= 120
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sweeper_survives_errors(self) -> None:
        sweep = AsyncMock(side_effect=[RuntimeError("db down"), [], asyncio.CancelledError()])
        with patch("ttrplobby.live.service.close_stale_rooms", sweep):
            with pytest.raises(asyncio.CancelledError):
                await run_stale_room_sweeper(MagicMock(), 120, 0)

        assert sweep.await_count == 3
