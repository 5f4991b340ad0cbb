import uuid
from typing import Optional
from enum import Enum

from app.db.base import BackendRecord


class ProjectStatus(str, Enum):
    """Project lifecycle status"""

    PLANNING = "planning"
    ACTIVE = "active"
    ARCHIVED = "archived"


class Project(BackendRecord):
    """
    A project owned by a user, optionally inside an organization.
    Projects without an organization are personal projects.
    """

    name: str
    description: Optional[str] = ""
    owner_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    status: ProjectStatus = ProjectStatus.PLANNING

    @property
    def is_archived(self) -> bool:
        return self.status == ProjectStatus.ARCHIVED

    @property
    def is_personal(self) -> bool:
        return self.organization_id is None

    def __repr__(self) -> str:
        return f"<Project(name={self.name}, status={self.status})>"
