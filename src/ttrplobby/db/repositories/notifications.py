"""Notification repository for database operations."""

import logging
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import Notification

logger = logging.getLogger(__name__)

LIST_LIMIT = 200


class NotificationRepository:
    """Repository for in-app notifications."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: The database session to use
        """
        self.session = session

    async def create(
        self,
        user_id: int,
        type: str,
        title: str,
        body: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Insert an unread notification for a user."""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            data=data or {},
            read=False,
        )
        self.session.add(notification)
        await self.session.flush()
        logger.debug(f"Created {type} notification for user {user_id}")
        return notification

    async def list_for_user(self, user_id: int, limit: int = LIST_LIMIT) -> list[Notification]:
        """Get a user's notifications, newest first."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, user_id: int, ids: list[int]) -> int:
        """Mark notifications as read. Ignores IDs the user does not own.

        Returns:
            Number of notifications updated
        """
        if not ids:
            return 0
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.id.in_(ids))
            .values(read=True)
        )
        return result.rowcount

    async def delete(self, user_id: int, notification_id: int) -> bool:
        """Delete one of a user's notifications.

        Returns:
            True if a notification was deleted
        """
        result = await self.session.execute(
            delete(Notification).where(
                Notification.user_id == user_id, Notification.id == notification_id
            )
        )
        return result.rowcount > 0
