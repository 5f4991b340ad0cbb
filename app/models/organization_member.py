import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from app.db.base import BackendRecord


class OrganizationRole(str, Enum):
    """Member roles within an organization"""

    OWNER = "owner"  # Full control, can delete the organization
    ADMIN = "admin"  # Manage members, projects and settings
    MEMBER = "member"  # Work on the organization's projects


class OrganizationMember(BackendRecord):
    """
    Membership of a user in an organization.
    One row per (organization, user), enforced by the backend.
    """

    organization_id: uuid.UUID
    user_id: uuid.UUID
    role: OrganizationRole = OrganizationRole.MEMBER
    invited_by: Optional[uuid.UUID] = None
    joined_at: Optional[datetime] = None

    @property
    def is_owner(self) -> bool:
        return self.role == OrganizationRole.OWNER

    @property
    def can_manage_members(self) -> bool:
        """Check if member can manage other members"""
        return self.role in [OrganizationRole.OWNER, OrganizationRole.ADMIN]

    @property
    def can_create_projects(self) -> bool:
        """Check if member can create projects in the organization"""
        return self.role in [OrganizationRole.OWNER, OrganizationRole.ADMIN]

    def __repr__(self) -> str:
        return f"<OrganizationMember(user_id={self.user_id}, org_id={self.organization_id}, role={self.role})>"
