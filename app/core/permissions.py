"""
Role rules for organizations and projects.

Roles come from the caller's membership row. These checks decide which
actions are offered and are enforced before a request reaches the backend;
the backend's own row-level policies remain the final authority.
"""

from typing import Optional, Union

from app.models.organization_member import OrganizationRole
from app.models.project import ProjectStatus
from app.models.project_member import ProjectRole

OrgRoleLike = Optional[Union[OrganizationRole, str]]
ProjectRoleLike = Optional[Union[ProjectRole, str]]

ORGANIZATION_MANAGER_ROLES = {OrganizationRole.OWNER, OrganizationRole.ADMIN}
PROJECT_MANAGER_ROLES = {ProjectRole.OWNER, ProjectRole.ADMIN}
TICKET_EDITOR_ROLES = {ProjectRole.OWNER, ProjectRole.ADMIN, ProjectRole.DEVELOPER}


def _org_role(role: OrgRoleLike) -> Optional[OrganizationRole]:
    if role is None:
        return None
    return OrganizationRole(role)


def _project_role(role: ProjectRoleLike) -> Optional[ProjectRole]:
    if role is None:
        return None
    return ProjectRole(role)


# Organizations


def can_manage_organization(role: OrgRoleLike) -> bool:
    """Owners and admins edit the organization, its members and its projects"""
    return _org_role(role) in ORGANIZATION_MANAGER_ROLES


def can_manage_members(role: OrgRoleLike) -> bool:
    return can_manage_organization(role)


def can_create_projects(role: OrgRoleLike) -> bool:
    return can_manage_organization(role)


def can_delete_organization(role: OrgRoleLike) -> bool:
    return _org_role(role) == OrganizationRole.OWNER


def can_change_member(actor_role: OrgRoleLike, target_role: OrgRoleLike) -> bool:
    """
    Whether the actor may change the role of, or remove, a member.
    Owner rows are never changed from here.
    """
    return (
        can_manage_members(actor_role)
        and _org_role(target_role) != OrganizationRole.OWNER
    )


def toggled_member_role(role: OrgRoleLike) -> OrganizationRole:
    """Role offered by the role toggle: admins become members and vice versa"""
    if _org_role(role) == OrganizationRole.ADMIN:
        return OrganizationRole.MEMBER
    return OrganizationRole.ADMIN


# Projects


def can_manage_project(role: ProjectRoleLike) -> bool:
    return _project_role(role) in PROJECT_MANAGER_ROLES


def can_archive_project(role: ProjectRoleLike, status: Union[ProjectStatus, str]) -> bool:
    return can_manage_project(role) and ProjectStatus(status) != ProjectStatus.ARCHIVED


def can_delete_project(role: ProjectRoleLike) -> bool:
    return _project_role(role) == ProjectRole.OWNER


def can_change_project_member(
    actor_role: ProjectRoleLike, target_role: ProjectRoleLike
) -> bool:
    return (
        can_manage_project(actor_role)
        and _project_role(target_role) != ProjectRole.OWNER
    )


def can_edit_tickets(role: ProjectRoleLike) -> bool:
    """Viewers are read-only"""
    return _project_role(role) in TICKET_EDITOR_ROLES


def can_delete_tickets(role: ProjectRoleLike) -> bool:
    return can_manage_project(role)
