"""Rate limiting for authentication and lobby endpoints.

Uses SlowAPI to prevent brute-force attacks on login, registration and
password reset, and to cap how fast a client can poll quick join.
"""

from collections.abc import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from ttrplobby.settings import get_settings

# Create the limiter instance using IP address as the key
limiter = Limiter(key_func=get_remote_address)

# Rate limit strings for different endpoints
# Format: "requests/period" (e.g., "5/minute", "3/hour")
LOGIN_LIMIT = "5/minute"
REGISTER_LIMIT = "3/minute"
FORGOT_PASSWORD_LIMIT = "3/minute"
VERIFY_LIMIT = "5/minute"
OAUTH_LIMIT = "10/minute"  # More lenient since OAuth involves redirects
QUICK_JOIN_LIMIT = "60/minute"  # Clients poll every 2-3 seconds
UPLOAD_LIMIT = "10/minute"


def create_rate_limit_dependency(limit_string: str, name: str) -> Callable:
    """Create a rate limit dependency for use with FastAPI routers.

    Args:
        limit_string: Rate limit in format "requests/period" (e.g., "5/minute")
        name: Unique name for this rate limit (used by SlowAPI for tracking)

    Returns:
        An async dependency function that applies rate limiting
    """
    # SlowAPI tracks limits by function identity, so decorate once here
    @limiter.limit(limit_string)
    async def _check_limit(request: Request, response: Response) -> None:
        pass

    _check_limit.__name__ = f"_check_limit_{name}"

    async def rate_limit_dependency(request: Request, response: Response) -> None:
        """Apply rate limiting to this request."""
        if not get_settings().rate_limiting_enabled:
            return

        await _check_limit(request, response)

    return rate_limit_dependency


login_rate_limit = create_rate_limit_dependency(LOGIN_LIMIT, "login")
register_rate_limit = create_rate_limit_dependency(REGISTER_LIMIT, "register")
forgot_password_rate_limit = create_rate_limit_dependency(FORGOT_PASSWORD_LIMIT, "forgot_password")
verify_rate_limit = create_rate_limit_dependency(VERIFY_LIMIT, "verify")
oauth_rate_limit = create_rate_limit_dependency(OAUTH_LIMIT, "oauth")
quick_join_rate_limit = create_rate_limit_dependency(QUICK_JOIN_LIMIT, "quick_join")
upload_rate_limit = create_rate_limit_dependency(UPLOAD_LIMIT, "upload")
