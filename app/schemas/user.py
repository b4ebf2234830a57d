"""User schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserPublic(BaseModel):
    """User as returned to the client."""

    id: UUID
    username: str
    email: EmailStr
    name: str

    @classmethod
    def from_user(cls, user) -> "UserPublic":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.display_name,
        )


class UserResponse(BaseModel):
    """Wrapper for GET/PUT /auth/me."""

    user: UserPublic


class UserUpdate(BaseModel):
    """Schema for updating the current user's profile."""

    username: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
