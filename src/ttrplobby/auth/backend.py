"""Authentication backend: JWT access tokens sent as bearer headers."""

from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy

from ttrplobby.db.models import User
from ttrplobby.settings import get_settings

bearer_transport = BearerTransport(tokenUrl="api/auth/login")


def get_jwt_strategy() -> JWTStrategy[User, int]:
    """Get the JWT strategy used to issue and read access tokens."""
    settings = get_settings()
    return JWTStrategy(
        secret=settings.secret_key,
        lifetime_seconds=settings.jwt_lifetime_seconds,
    )


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)
