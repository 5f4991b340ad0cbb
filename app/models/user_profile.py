import uuid
from typing import Optional

from app.db.base import BackendRecord


class UserProfile(BackendRecord):
    """
    Public profile of an account, kept by the backend next to the auth user.
    """

    table = "profiles"

    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown User"

    @property
    def user_id(self) -> uuid.UUID:
        """Profiles share their ID with the auth user"""
        return self.id
