import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from app.db.base import BackendRecord


class ProjectRole(str, Enum):
    """Roles within a specific project"""

    OWNER = "owner"  # Created the project, can delete it
    ADMIN = "admin"  # Manage settings and members
    DEVELOPER = "developer"  # Create and edit tickets
    VIEWER = "viewer"  # Read-only access


class ProjectMember(BackendRecord):
    """
    Membership of a user in a project.
    """

    project_id: uuid.UUID
    user_id: uuid.UUID
    role: ProjectRole = ProjectRole.DEVELOPER
    invited_by: Optional[uuid.UUID] = None
    joined_at: Optional[datetime] = None

    @property
    def is_owner(self) -> bool:
        return self.role == ProjectRole.OWNER

    @property
    def can_manage_tickets(self) -> bool:
        """Check if member can create and edit tickets"""
        return self.role in [
            ProjectRole.OWNER,
            ProjectRole.ADMIN,
            ProjectRole.DEVELOPER,
        ]

    def __repr__(self) -> str:
        return f"<ProjectMember(project_id={self.project_id}, user_id={self.user_id}, role={self.role})>"
