"""Pydantic schemas for users."""

from datetime import datetime

from fastapi_users import schemas
from pydantic import BaseModel, Field, model_validator


class UserRead(schemas.BaseUser[int]):
    """User data returned to the account owner."""

    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    time_zone: str | None = None
    created_at: datetime | None = None

    @model_validator(mode="after")
    def _default_display_name(self) -> "UserRead":
        if not self.display_name:
            self.display_name = self.username
        return self


class UserCreate(schemas.BaseUserCreate):
    """Registration payload. Username is generated when omitted."""

    username: str | None = Field(default=None, min_length=3, max_length=50)
    display_name: str | None = Field(default=None, max_length=80)
    time_zone: str | None = Field(default=None, max_length=64)


class UserUpdate(schemas.BaseUserUpdate):
    """Profile update payload."""

    username: str | None = Field(default=None, min_length=3, max_length=50)
    display_name: str | None = Field(default=None, max_length=80)
    avatar_url: str | None = None
    bio: str | None = Field(default=None, max_length=2000)
    time_zone: str | None = Field(default=None, max_length=64)


class PublicProfile(BaseModel):
    """Profile fields visible to other players."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def _default_display_name(self) -> "PublicProfile":
        if not self.display_name:
            self.display_name = self.username
        return self
