"""User management for FastAPI-Users.

Provides a custom UserManager with random username generation, email
sending, and OAuth sign-in that creates profiles with generated usernames.
"""

import logging
import random
from typing import Any

from fastapi import Request
from fastapi_users import BaseUserManager, IntegerIDMixin
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy import func, select

from ttrplobby.auth.email import send_password_reset_email, send_verification_email
from ttrplobby.db.models import OAuthAccount, User
from ttrplobby.settings import get_settings

logger = logging.getLogger(__name__)

# Word lists for random username generation
CREATURES = [
    "Owlbear",
    "Beholder",
    "Mimic",
    "Dragon",
    "Goblin",
    "Kobold",
    "Griffon",
    "Basilisk",
    "Wyvern",
    "Lich",
]

CLASSES = [
    "Bard",
    "Rogue",
    "Wizard",
    "Cleric",
    "Paladin",
    "Ranger",
    "Druid",
    "Monk",
    "Warlock",
    "Fighter",
]


def generate_random_username() -> str:
    """Generate a random username like 'Owlbear Bard 456'.

    Returns:
        A random username in the format "Creature Class Number"
    """
    creature = random.choice(CREATURES)
    character_class = random.choice(CLASSES)
    number = random.randint(100, 999)
    return f"{creature} {character_class} {number}"


class UserManager(IntegerIDMixin, BaseUserManager[User, int]):
    """Custom user manager with application-specific logic.

    Features:
    - Auto-generates usernames if not provided during registration
    - Sends verification and password reset emails via Resend
    - Creates a profile with a generated username on first OAuth sign-in
    """

    reset_password_token_secret = get_settings().secret_key
    verification_token_secret = get_settings().secret_key

    async def on_after_register(self, user: User, request: Request | None = None) -> None:
        """Log the registration and request a verification email."""
        logger.info(f"User {user.id} ({user.username}) registered")

        if not user.is_verified and get_settings().resend_enabled:
            try:
                await self.request_verify(user, request)
            except Exception as e:
                logger.warning(f"Failed to send verification email: {e}")

    async def on_after_forgot_password(
        self, user: User, token: str, request: Request | None = None
    ) -> None:
        """Send the password reset email with token."""
        logger.info(f"Password reset requested for user {user.id}")
        await send_password_reset_email(user.email, token)

    async def on_after_request_verify(
        self, user: User, token: str, request: Request | None = None
    ) -> None:
        """Send the verification email with token."""
        logger.info(f"Verification requested for user {user.id}")
        await send_verification_email(user.email, token)

    async def oauth_callback(
        self,
        oauth_name: str,
        access_token: str,
        account_id: str,
        account_email: str,
        expires_at: int | None = None,
        refresh_token: str | None = None,
        request: Request | None = None,
        *,
        associate_by_email: bool = False,
        is_verified_by_default: bool = False,
    ) -> User:
        """Handle an OAuth sign-in.

        1. Existing OAuth account: refresh its tokens and return its user
        2. Existing user with the same email (if associate_by_email): link it
        3. Otherwise create a user with a generated username

        Returns:
            The authenticated user
        """
        oauth_account_dict = {
            "oauth_name": oauth_name,
            "access_token": access_token,
            "account_id": account_id,
            "account_email": account_email,
            "expires_at": expires_at,
            "refresh_token": refresh_token,
        }

        user = await self.user_db.get_by_oauth_account(oauth_name, account_id)
        if user is not None:
            for existing in user.oauth_accounts:
                if existing.account_id == account_id and existing.oauth_name == oauth_name:
                    user = await self.user_db.update_oauth_account(
                        user, existing, oauth_account_dict
                    )
            return user

        if associate_by_email:
            user = await self.user_db.get_by_email(account_email)
            if user is not None:
                logger.info(f"Linking {oauth_name} account to existing user {user.id}")
                return await self.user_db.add_oauth_account(user, oauth_account_dict)

        username = await self._generate_unique_username()
        user = await self.user_db.create(
            {
                "email": account_email,
                "hashed_password": self.password_helper.hash(self.password_helper.generate()),
                "is_verified": is_verified_by_default,
                "username": username,
            }
        )
        user = await self.user_db.add_oauth_account(user, oauth_account_dict)
        logger.info(f"Created new OAuth user {user.id} ({user.username})")

        await self.on_after_register(user, request)
        return user

    async def create(
        self,
        user_create: Any,
        safe: bool = False,
        request: Request | None = None,
    ) -> User:
        """Create a new user with an auto-generated username if needed.

        Args:
            user_create: User creation schema
            safe: If True, only allow safe fields (for registration endpoints)
            request: The FastAPI request object

        Returns:
            The created user
        """
        if not getattr(user_create, "username", None):
            username = await self._generate_unique_username()
            user_dict = user_create.model_dump()
            user_dict["username"] = username
            user_create = user_create.__class__(**user_dict)

        return await super().create(user_create, safe, request)

    async def is_username_available(self, username: str, exclude_user_id: int | None = None) -> bool:
        """Check whether a username is free (case-insensitive)."""
        query = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await self.user_db.session.execute(query)
        return result.first() is None

    async def _generate_unique_username(self, max_attempts: int = 10) -> str:
        """Generate a unique random username.

        Args:
            max_attempts: Maximum number of generation attempts

        Returns:
            A unique username

        Raises:
            RuntimeError: If unable to generate a unique username
        """
        for _ in range(max_attempts):
            username = generate_random_username()
            result = await self.user_db.session.execute(
                select(User).where(User.username == username)
            )
            if result.unique().scalar_one_or_none() is None:
                return username

        raise RuntimeError("Unable to generate unique username after multiple attempts")


def build_user_db(session: Any) -> SQLAlchemyUserDatabase[User, int]:
    """Build the FastAPI-Users database adapter for a session."""
    return SQLAlchemyUserDatabase(session, User, OAuthAccount)
