"""Fit score for applications to scheduled games."""

# Experience component
VERY_EXPERIENCED_SCORE = 65
SOME_EXPERIENCE_SCORE = 50
NEW_PLAYER_WELCOME_SCORE = 45
NEW_PLAYER_WELCOME_BONUS = 5
NEW_PLAYER_UNWELCOME_SCORE = 35

# Time zone component
SAME_TIME_ZONE_SCORE = 30
OTHER_TIME_ZONE_SCORE = 15
PLAYER_TIME_ZONE_ONLY_SCORE = 12
NO_TIME_ZONE_SCORE = 8


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def compute_fit_score(
    experience: str | None,
    player_time_zone: str | None,
    game_time_zone: str | None,
    welcomes_new: bool,
) -> int:
    """Score how well an applicant fits a game, from 0 to 100.

    Experience is matched by keyword ("very", then "some"); anyone else is
    treated as a new player, scored by whether the game welcomes them. Time
    zones score highest when they match exactly (case-insensitive).

    Args:
        experience: Applicant's self-described experience
        player_time_zone: Applicant's time zone
        game_time_zone: Time zone the game runs in
        welcomes_new: Whether the game welcomes new players

    Returns:
        The fit score
    """
    score = 0

    exp = _normalize(experience)
    if "very" in exp:
        score += VERY_EXPERIENCED_SCORE
    elif "some" in exp:
        score += SOME_EXPERIENCE_SCORE
    elif welcomes_new:
        score += NEW_PLAYER_WELCOME_SCORE + NEW_PLAYER_WELCOME_BONUS
    else:
        score += NEW_PLAYER_UNWELCOME_SCORE

    player_tz = _normalize(player_time_zone)
    game_tz = _normalize(game_time_zone)
    if player_tz and game_tz:
        score += SAME_TIME_ZONE_SCORE if player_tz == game_tz else OTHER_TIME_ZONE_SCORE
    elif player_tz:
        score += PLAYER_TIME_ZONE_ONLY_SCORE
    else:
        score += NO_TIME_ZONE_SCORE

    return max(0, min(100, score))
