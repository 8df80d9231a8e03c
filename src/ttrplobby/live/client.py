"""Client-side quick-join loop.

Polls ``POST /api/live/quick-join`` with progressively relaxed criteria until
a room is found, the timeout elapses, or the caller cancels the task.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

import httpx

from ttrplobby.live.matching import (
    OPEN_DELAY_SECONDS,
    STRICT_DELAY_SECONDS,
    STRICT_PHASE_SECONDS,
    WIDEN_DELAY_SECONDS,
    WIDEN_TOLERANCES_MINUTES,
    MatchCriteria,
    SearchPhase,
)

logger = logging.getLogger(__name__)

QUICK_JOIN_PATH = "/api/live/quick-join"


class NotAuthenticatedError(Exception):
    """Raised when the server rejects the access token."""


class InvalidCriteriaError(Exception):
    """Raised when the server rejects the search criteria."""


class QuickJoinClient:
    """Runs quick-join searches against a ttrplobby server.

    Example:
        async with QuickJoinClient("https://www.ttrplobby.com", token) as client:
            room_id = await client.search(MatchCriteria("D&D 5e (2014)", 120))
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        request_timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server base URL
            access_token: JWT bearer token of the searching player
            transport: Optional httpx transport (used by tests)
            sleep: Coroutine used between attempts
            clock: Monotonic clock in seconds
            request_timeout: Per-request timeout in seconds
        """
        self._http = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=request_timeout,
        )
        self._sleep = sleep
        self._clock = clock

    async def __aenter__(self) -> "QuickJoinClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def attempt(
        self,
        criteria: MatchCriteria,
        exclude: uuid.UUID | None = None,
    ) -> uuid.UUID | None:
        """Make a single quick-join request.

        Args:
            criteria: Filters for this attempt
            exclude: Room to skip (e.g. one the player was just kicked from)

        Returns:
            The joined room ID, or None if nothing matched

        Raises:
            NotAuthenticatedError: If the server rejected the token
            InvalidCriteriaError: If the server rejected the criteria
        """
        params = {"exclude": str(exclude)} if exclude else None
        try:
            response = await self._http.post(
                QUICK_JOIN_PATH, json=criteria.to_payload(), params=params
            )
        except httpx.TransportError as e:
            logger.warning(f"Quick join request failed: {e}")
            return None

        if response.status_code == 401:
            raise NotAuthenticatedError("Please sign in to join games.")
        if response.status_code in (400, 422):
            detail = response.json().get("detail")
            if not isinstance(detail, str):
                detail = "Invalid search criteria"
            raise InvalidCriteriaError(detail)
        if response.status_code == 200:
            return uuid.UUID(response.json()["gameId"])
        if response.status_code != 404:
            logger.warning(f"Quick join returned unexpected status {response.status_code}")
        return None

    async def search(
        self,
        criteria: MatchCriteria,
        *,
        exclude: uuid.UUID | None = None,
        timeout: float | None = None,
        on_phase: Callable[[SearchPhase], None] | None = None,
    ) -> uuid.UUID | None:
        """Search until a room is joined.

        Phases:
            strict: exact criteria for 30s, 2s between attempts
            widening: one attempt per tolerance from 1h to 8h, 2s apart
            open: 8h tolerance with flags ignored, 3s apart, until done

        Args:
            criteria: The player's exact filters
            exclude: Room to skip
            timeout: Give up after this many seconds (None searches forever)
            on_phase: Called whenever the search enters a new phase

        Returns:
            The joined room ID, or None if the timeout elapsed

        Raises:
            NotAuthenticatedError: If the server rejected the token
            InvalidCriteriaError: If the server rejected the criteria
        """
        started = self._clock()
        deadline = started + timeout if timeout is not None else None

        def expired() -> bool:
            return deadline is not None and self._clock() >= deadline

        async def pause(delay: float) -> None:
            if deadline is not None:
                delay = min(delay, max(0.0, deadline - self._clock()))
            await self._sleep(delay)

        def enter(phase: SearchPhase) -> None:
            logger.debug(f"Quick join entering {phase.value} phase")
            if on_phase is not None:
                on_phase(phase)

        enter(SearchPhase.STRICT)
        strict_until = started + STRICT_PHASE_SECONDS
        while self._clock() < strict_until and not expired():
            room_id = await self.attempt(criteria, exclude)
            if room_id is not None:
                return room_id
            await pause(STRICT_DELAY_SECONDS)

        enter(SearchPhase.WIDENING)
        for tolerance in WIDEN_TOLERANCES_MINUTES:
            if expired():
                return None
            room_id = await self.attempt(criteria.widened(tolerance), exclude)
            if room_id is not None:
                return room_id
            await pause(WIDEN_DELAY_SECONDS)

        enter(SearchPhase.OPEN)
        relaxed = criteria.relaxed()
        while not expired():
            room_id = await self.attempt(relaxed, exclude)
            if room_id is not None:
                return room_id
            await pause(OPEN_DELAY_SECONDS)

        logger.info("Quick join search timed out")
        return None
