"""Live rooms: instant lobbies that players quick-join."""

from ttrplobby.live.config import catalog, resolve_system
from ttrplobby.live.matching import MatchCriteria, SearchPhase
from ttrplobby.live.service import LiveError, LiveRoomService, NewLiveRoom

__all__ = [
    "LiveError",
    "LiveRoomService",
    "MatchCriteria",
    "NewLiveRoom",
    "SearchPhase",
    "catalog",
    "resolve_system",
]
