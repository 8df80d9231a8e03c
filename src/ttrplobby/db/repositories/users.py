"""User repository for database operations."""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for profile lookups and account deletion."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: The database session to use
        """
        self.session = session

    async def get_by_id(self, user_id: int) -> User | None:
        """Get a user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.unique().scalar_one_or_none()

    async def username_exists(self, username: str, exclude_user_id: int | None = None) -> bool:
        """Check if a username is taken (case-insensitive)."""
        query = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def delete(self, user_id: int) -> bool:
        """Delete a user. Memberships, applications and notifications cascade.

        Returns:
            True if the user existed
        """
        result = await self.session.execute(delete(User).where(User.id == user_id))
        if result.rowcount:
            logger.info(f"Deleted user {user_id}")
        return result.rowcount > 0
