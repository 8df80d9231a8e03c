"""Mapping of service error codes to HTTP errors."""

from typing import NoReturn, Protocol

from fastapi import HTTPException, status


class ServiceError(Protocol):
    code: str
    message: str


# Codes not listed here are client errors (400)
ERROR_STATUS: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "not_member": status.HTTP_404_NOT_FOUND,
    "no_match": status.HTTP_404_NOT_FOUND,
    "no_game_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "own_game": status.HTTP_403_FORBIDDEN,
    "full": status.HTTP_409_CONFLICT,
    "closed": status.HTTP_409_CONFLICT,
    "already_applied": status.HTTP_409_CONFLICT,
    "host_must_end": status.HTTP_409_CONFLICT,
    "host_cannot_leave": status.HTTP_409_CONFLICT,
    "file_too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "storage_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def raise_for_error(error: ServiceError) -> NoReturn:
    """Raise the HTTPException for a service error.

    Raises:
        HTTPException: Status from ERROR_STATUS (default 400), detail is the message
    """
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
