"""Account service: avatars and account deletion."""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ttrplobby.db.models import User, utcnow
from ttrplobby.db.repositories.users import UserRepository
from ttrplobby.live.service import LiveRoomService
from ttrplobby.storage import AVATARS_PREFIX, POSTERS_PREFIX, StorageClient, build_object_path

logger = logging.getLogger(__name__)

MAX_AVATAR_BYTES = 2 * 1024 * 1024


@dataclass
class AccountError:
    """Error result from an account operation."""

    code: str
    message: str


class AccountService:
    """Account operations bound to one database session."""

    def __init__(self, session: AsyncSession, storage: StorageClient) -> None:
        self.session = session
        self.storage = storage
        self.users = UserRepository(session)

    async def get_profile(self, user_id: int) -> User | AccountError:
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            return AccountError(code="not_found", message="User not found")
        return user

    async def username_available(self, username: str, user_id: int | None = None) -> bool:
        """Check if a username is free, ignoring the caller's own."""
        username = username.strip()
        if len(username) < 3:
            return False
        return not await self.users.username_exists(username, exclude_user_id=user_id)

    async def upload_avatar(
        self,
        user: User,
        filename: str | None,
        content_type: str | None,
        data: bytes,
    ) -> str | AccountError:
        """Store an avatar image and set it on the profile.

        Returns:
            The public URL of the avatar, or AccountError
        """
        if not content_type or not content_type.startswith("image/"):
            return AccountError(code="invalid_file", message="Avatars must be images")
        if not data:
            return AccountError(code="invalid_file", message="The uploaded file is empty")
        if len(data) > MAX_AVATAR_BYTES:
            return AccountError(code="file_too_large", message="Avatars must be 2 MB or smaller")

        path = build_object_path(AVATARS_PREFIX, user.id, filename)
        await asyncio.to_thread(self.storage.upload_bytes, path, data, content_type)

        user.avatar_url = self.storage.public_url(path)
        user.updated_at = utcnow()
        await self.session.flush()
        logger.info(f"User {user.id} uploaded avatar {path}")
        return user.avatar_url

    async def delete_account(self, user_id: int) -> bool:
        """Delete a user and everything they own.

        1. End the live rooms they host (removing posters)
        2. Delete their avatars/ and posters/ folders from storage
        3. Delete their presence rows
        4. Delete the user; memberships, applications, notifications,
           hosted games and chat messages cascade

        Returns:
            True if the user existed
        """
        live = LiveRoomService(self.session, self.storage)
        ended = await live.end_all_hosted(user_id)
        if ended:
            logger.info(f"Ended {ended} live room(s) of deleted user {user_id}")

        for prefix in (AVATARS_PREFIX, POSTERS_PREFIX):
            folder = f"{prefix}/{user_id}"
            paths = await asyncio.to_thread(self.storage.list_prefix, folder)
            if paths:
                await asyncio.to_thread(self.storage.delete, paths)
                logger.info(f"Deleted {len(paths)} object(s) under {folder}")

        await live.rooms.delete_presence_for_user(user_id)
        return await self.users.delete(user_id)
