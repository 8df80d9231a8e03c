"""Quick-join search criteria and the relaxation plan used by clients.

A quick-join search starts with the player's exact filters, then widens the
accepted session length one step at a time, and finally ignores the
new-player and 18+ flags entirely. Each step is a single filtered query on
the server; all retrying happens on the client.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from ttrplobby.live.config import MIN_SEARCH_LENGTH_MINUTES

# Strict phase: exact filters for this long, polling every STRICT_DELAY_SECONDS
STRICT_PHASE_SECONDS = 30.0
STRICT_DELAY_SECONDS = 2.0

# Widening phase: one pass over these tolerances (up to 8 hours)
WIDEN_TOLERANCES_MINUTES: tuple[int, ...] = (60, 120, 180, 240, 300, 360, 420, 480)
WIDEN_DELAY_SECONDS = 2.0

# Open phase: widest tolerance, flags ignored, until found or cancelled
OPEN_TOLERANCE_MINUTES = 480
OPEN_DELAY_SECONDS = 3.0


class SearchPhase(Enum):
    """Stages of a quick-join search."""

    STRICT = "strict"
    WIDENING = "widening"
    OPEN = "open"


PHASE_HINTS: dict[SearchPhase, str] = {
    SearchPhase.STRICT: "Searching with your exact filters...",
    SearchPhase.WIDENING: "Expanding the search window by length...",
    SearchPhase.OPEN: "No strict match yet, searching broadly...",
}


@dataclass(frozen=True)
class MatchCriteria:
    """Filters for one quick-join query.

    Attributes:
        system: Canonical system label
        length_minutes: Desired session length
        new_player_friendly: Required new-player flag (unless ignore_flags)
        adult: Required 18+ flag (unless ignore_flags)
        tolerance_minutes: Accepted distance from length_minutes
        ignore_flags: Skip the new-player and 18+ filters
    """

    system: str
    length_minutes: int
    new_player_friendly: bool = True
    adult: bool = False
    tolerance_minutes: int = 0
    ignore_flags: bool = False

    def length_window(self) -> tuple[int, int]:
        """Inclusive range of accepted session lengths."""
        low = max(MIN_SEARCH_LENGTH_MINUTES, self.length_minutes - self.tolerance_minutes)
        high = self.length_minutes + self.tolerance_minutes
        return low, high

    def widened(self, tolerance_minutes: int) -> "MatchCriteria":
        """Copy of these criteria with a different length tolerance."""
        return replace(self, tolerance_minutes=tolerance_minutes)

    def relaxed(self) -> "MatchCriteria":
        """Widest criteria: maximum tolerance and flags ignored."""
        return replace(self, tolerance_minutes=OPEN_TOLERANCE_MINUTES, ignore_flags=True)

    def to_payload(self) -> dict[str, Any]:
        """Request body for POST /api/live/quick-join."""
        payload: dict[str, Any] = {
            "system": self.system,
            "lengthMinutes": self.length_minutes,
            "toleranceMinutes": self.tolerance_minutes,
        }
        if self.ignore_flags:
            payload["ignoreFlags"] = True
        else:
            payload["newPlayerFriendly"] = self.new_player_friendly
            payload["adult"] = self.adult
        return payload
