"""Notification API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ttrplobby.api.dependencies import get_notification_repository
from ttrplobby.auth.dependencies import get_required_user_with_dev_bypass
from ttrplobby.db.models import Notification, User
from ttrplobby.db.repositories.notifications import NotificationRepository

router = APIRouter(prefix="/notifications", tags=["notifications"])

CurrentUser = Annotated[User, Depends(get_required_user_with_dev_bypass)]
Repository = Annotated[NotificationRepository, Depends(get_notification_repository)]


class MarkReadRequest(BaseModel):
    """Notifications to mark as read."""

    ids: list[int]


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data,
        "read": notification.read,
        "created_at": notification.created_at.isoformat(),
    }


@router.get("")
async def list_notifications(user: CurrentUser, repository: Repository) -> dict[str, Any]:
    """Get the caller's notifications, newest first."""
    notifications = await repository.list_for_user(user.id)
    return {
        "notifications": [serialize_notification(n) for n in notifications],
        "unread": sum(1 for n in notifications if not n.read),
    }


@router.post("/read")
async def mark_read(
    request: MarkReadRequest, user: CurrentUser, repository: Repository
) -> dict[str, Any]:
    """Mark some of the caller's notifications as read."""
    updated = await repository.mark_read(user.id, request.ids)
    return {"updated": updated}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int, user: CurrentUser, repository: Repository
) -> dict[str, Any]:
    if not await repository.delete(user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}
