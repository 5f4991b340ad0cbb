"""
Records mirrored from the backend tables.
"""

from .user_profile import UserProfile
from .organization import Organization
from .organization_member import OrganizationMember, OrganizationRole
from .user_permission import UserPermission
from .project import Project, ProjectStatus
from .project_member import ProjectMember, ProjectRole
from .ticket import Ticket, TicketPriority, TicketStatus

__all__ = [
    "UserProfile",
    "Organization",
    "OrganizationMember",
    "OrganizationRole",
    "UserPermission",
    "Project",
    "ProjectStatus",
    "ProjectMember",
    "ProjectRole",
    "Ticket",
    "TicketPriority",
    "TicketStatus",
]
