import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.core.utils import AvatarUtils, DisplayUtils
from app.models.user_profile import UserProfile


class ProfileSummary(BaseModel):
    """Name and e-mail shown next to members and assignees"""

    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileSummary":
        return cls(id=profile.id, name=profile.name, email=profile.email)


class UserProfileResponse(BaseModel):
    """The caller's own profile"""

    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    initial: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            avatar_url=AvatarUtils.resolve_avatar_url(profile.avatar_url, profile.email),
            initial=DisplayUtils.initial(profile.name, profile.email),
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class UserProfileUpdate(BaseModel):
    """Editable profile fields"""

    name: Optional[str] = Field(None, description="Display name")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


__all__ = ["ProfileSummary", "UserProfileResponse", "UserProfileUpdate"]
