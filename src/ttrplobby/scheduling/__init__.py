"""Scheduled games and the application workflow."""

from ttrplobby.scheduling.applications import ApplicationError, ApplicationService
from ttrplobby.scheduling.fit import compute_fit_score
from ttrplobby.scheduling.games import GameError, GameService

__all__ = [
    "ApplicationError",
    "ApplicationService",
    "GameError",
    "GameService",
    "compute_fit_score",
]
