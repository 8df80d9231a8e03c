"""Live room catalog, defaults and payload validation."""

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class GameSystem:
    """A supported game system."""

    slug: str
    label: str


SYSTEMS: tuple[GameSystem, ...] = (
    GameSystem(slug="dnd-5e-2014", label="D&D 5e (2014)"),
)

# Legacy identifiers that older clients send for the same systems
SYSTEM_ALIASES: dict[str, str] = {
    "dnd5e": "D&D 5e (2014)",
    "dnd-5e": "D&D 5e (2014)",
}

LENGTHS_MINUTES: tuple[int, ...] = (60, 90, 120, 180)

DEFAULT_SYSTEM = "D&D 5e (2014)"
DEFAULT_LENGTH_MINUTES = 120
DEFAULT_NEW_PLAYER_FRIENDLY = True
DEFAULT_IS_18_PLUS = False
DEFAULT_IS_PRIVATE = False

MIN_SEATS = 1
MAX_SEATS = 10
DEFAULT_SEATS = 6

# Quick-join never searches below this many minutes
MIN_SEARCH_LENGTH_MINUTES = 15


def resolve_system(value: str | None) -> str | None:
    """Resolve a system slug, label or alias to its canonical label.

    Args:
        value: Slug ("dnd-5e-2014"), label ("D&D 5e (2014)") or alias

    Returns:
        The canonical label, or None if the system is not supported
    """
    if not value:
        return None
    needle = value.strip().lower()
    for system in SYSTEMS:
        if needle in (system.slug, system.label.lower()):
            return system.label
    return SYSTEM_ALIASES.get(needle)


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # "nan" and "inf" parse as floats but are not usable counts
    return number if math.isfinite(number) else None


def normalize_length_minutes(
    length_minutes: Any = None,
    length_hours: Any = None,
    length: Any = None,
) -> int | None:
    """Normalize the session length a client sent into minutes.

    Explicit minutes win, then explicit hours. A bare ``length`` below 24 is
    read as hours, anything else as minutes.
    """
    minutes = _as_number(length_minutes)
    if minutes is not None:
        return round(minutes)

    hours = _as_number(length_hours)
    if hours is not None and math.isfinite(hours * 60):
        return round(hours * 60)

    bare = _as_number(length)
    if bare is not None:
        if 0 < bare < 24:
            return round(bare * 60)
        return round(bare)

    return None


def to_bool(value: Any) -> bool:
    """Interpret common truthy payload values."""
    return value is True or value in ("true", "1", 1)


def clamp_seats(value: Any) -> int:
    """Clamp a requested seat count into the supported range."""
    seats = _as_number(value)
    if seats is None:
        return DEFAULT_SEATS
    return max(MIN_SEATS, min(MAX_SEATS, int(seats)))


def validate_create(
    system: str | None,
    length_minutes: int | None,
    new_player_friendly: Any,
    is_18_plus: Any,
    is_private: Any,
) -> str | None:
    """Validate a live room creation payload.

    Returns:
        An error code, or None if the payload is valid
    """
    if resolve_system(system) is None:
        return "invalid_system"
    if length_minutes not in LENGTHS_MINUTES:
        return "invalid_length"
    if not isinstance(new_player_friendly, bool):
        return "invalid_npf"
    if not isinstance(is_18_plus, bool):
        return "invalid_adult"
    if not isinstance(is_private, bool):
        return "invalid_privacy"
    return None


def validate_quick_join(
    system: str | None,
    length_minutes: int | None,
    new_player_friendly: Any,
    adult: Any,
) -> str | None:
    """Validate a quick-join search payload.

    Returns:
        An error code, or None if the payload is valid
    """
    if resolve_system(system) is None:
        return "invalid_system"
    if length_minutes not in LENGTHS_MINUTES:
        return "invalid_length"
    if not isinstance(new_player_friendly, bool):
        return "invalid_npf"
    if not isinstance(adult, bool):
        return "invalid_adult"
    return None


def catalog() -> dict[str, Any]:
    """Catalog exposed to clients for building search and create forms."""
    return {
        "systems": [{"slug": s.slug, "label": s.label} for s in SYSTEMS],
        "lengthsMinutes": list(LENGTHS_MINUTES),
        "defaults": {
            "system": DEFAULT_SYSTEM,
            "lengthMinutes": DEFAULT_LENGTH_MINUTES,
            "newPlayerFriendly": DEFAULT_NEW_PLAYER_FRIENDLY,
            "is18Plus": DEFAULT_IS_18_PLUS,
            "isPrivate": DEFAULT_IS_PRIVATE,
            "seats": DEFAULT_SEATS,
        },
    }
