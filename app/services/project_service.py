import logging
from typing import List, Optional
from uuid import UUID

from app.core import permissions
from app.core.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.models.organization_member import OrganizationMember
from app.models.project import Project, ProjectStatus
from app.models.project_member import ProjectMember, ProjectRole
from app.schemas.project import (
    ProjectCreate,
    ProjectDetailsResponse,
    ProjectMemberInvite,
    ProjectMemberResponse,
    ProjectMemberUpdate,
    ProjectResponse,
    ProjectUpdate,
)
from app.schemas.user import ProfileSummary
from app.services.common import CommonService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

PROJECTS = Project.table_name()
MEMBERS = ProjectMember.table_name()


class ProjectService(CommonService):
    """Project management service with member operations"""

    @property
    def users(self) -> UserService:
        return UserService(self.backend, self.session)

    async def get_membership(
        self, project_id: UUID, user_id: Optional[UUID] = None
    ) -> Optional[ProjectMember]:
        """
        Get the membership row of a user in a project.
        :param project_id: Project ID.
        :param user_id: User ID, defaults to the caller.
        :return: ProjectMember or None.
        """
        row = await self.backend.select_one(
            MEMBERS,
            filters={"project_id": str(project_id), "user_id": str(user_id or self.user_id)},
            access_token=self.access_token,
        )
        return ProjectMember.from_row(row) if row else None

    async def require_membership(self, project_id: UUID) -> ProjectMember:
        """
        Get the caller's membership; projects the caller is not part of are
        reported as missing.
        """
        membership = await self.get_membership(project_id)
        if membership is None:
            raise NotFoundException("Project", str(project_id), message="Project not found")
        return membership

    async def require_manager(self, project_id: UUID) -> ProjectMember:
        membership = await self.require_membership(project_id)
        if not permissions.can_manage_project(membership.role):
            raise ForbiddenException("Only project owners and admins can do this")
        return membership

    async def _load_project(self, project_id: UUID) -> Project:
        row = await self.backend.select_one(
            PROJECTS,
            filters={"id": str(project_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise NotFoundException("Project", str(project_id), message="Project not found")
        return Project.from_row(row)

    async def _member_count(self, project_id: UUID) -> int:
        return await self.backend.count(
            MEMBERS,
            filters={"project_id": str(project_id)},
            access_token=self.access_token,
        )

    async def _update(self, project_id: UUID, changes: dict) -> Project:
        rows = await self.backend.update(
            PROJECTS,
            changes,
            filters={"id": str(project_id)},
            access_token=self.access_token,
        )
        if not rows:
            raise NotFoundException("Project", str(project_id), message="Project not found")
        return Project.from_row(rows[0])

    async def list_projects(
        self, organization_id: Optional[UUID] = None
    ) -> List[ProjectResponse]:
        """
        Projects the caller belongs to, most recently updated first.
        :param organization_id: Only projects of this organization.
        :return: Projects with the caller's role and their member count.
        """
        memberships = [
            ProjectMember.from_row(row)
            for row in await self.backend.select(
                MEMBERS,
                filters={"user_id": str(self.user_id)},
                access_token=self.access_token,
            )
        ]
        if not memberships:
            return []

        roles = {m.project_id: m.role for m in memberships}
        filters = {"id": [str(project_id) for project_id in roles]}
        if organization_id is not None:
            filters["organization_id"] = str(organization_id)

        rows = await self.backend.select(
            PROJECTS,
            filters=filters,
            order="updated_at.desc",
            access_token=self.access_token,
        )
        projects = [Project.from_row(row) for row in rows]
        counts = await self.count_rows_by(MEMBERS, "project_id", [p.id for p in projects])

        return [
            ProjectResponse.build(project, roles[project.id], counts[project.id])
            for project in projects
        ]

    async def get_project(self, project_id: UUID) -> ProjectResponse:
        """
        Get one project the caller belongs to.
        """
        membership = await self.require_membership(project_id)
        project = await self._load_project(project_id)
        return ProjectResponse.build(
            project, membership.role, await self._member_count(project_id)
        )

    async def get_project_details(self, project_id: UUID) -> ProjectDetailsResponse:
        """
        Project page: the project, its members and who tickets can go to.
        :param project_id: Project ID.
        :return: ProjectDetailsResponse
        """
        membership = await self.require_membership(project_id)
        project = await self._load_project(project_id)
        members = await self.list_members(project_id, viewer=membership)

        return ProjectDetailsResponse(
            project=ProjectResponse.build(project, membership.role, len(members)),
            members=members,
            assignees=[
                ProfileSummary(id=m.user_id, name=m.name, email=m.email)
                for m in members
            ],
            can_create_tickets=permissions.can_edit_tickets(membership.role),
        )

    async def _require_project_creator(self, organization_id: UUID) -> None:
        row = await self.backend.select_one(
            OrganizationMember.table_name(),
            filters={
                "organization_id": str(organization_id),
                "user_id": str(self.user_id),
            },
            access_token=self.access_token,
        )
        org_member = OrganizationMember.from_row(row) if row else None
        if org_member is None or not permissions.can_create_projects(org_member.role):
            raise ForbiddenException(
                "You do not have permission to create projects in this organization"
            )

    async def create_project(self, data: ProjectCreate) -> ProjectResponse:
        """
        Create a project owned by the caller, personal or inside an organization.
        :param data: ProjectCreate schema.
        :return: The new project with role owner and one member.
        """
        if data.organization_id is not None:
            await self._require_project_creator(data.organization_id)

        rows = await self.backend.insert(
            PROJECTS,
            {
                "name": data.name,
                "description": data.description or "",
                "status": data.status.value,
                "organization_id": str(data.organization_id) if data.organization_id else None,
                "owner_id": str(self.user_id),
            },
            access_token=self.access_token,
        )
        project = Project.from_row(rows[0])

        await self.backend.insert(
            MEMBERS,
            {
                "project_id": str(project.id),
                "user_id": str(self.user_id),
                "role": ProjectRole.OWNER.value,
                "invited_by": str(self.user_id),
            },
            access_token=self.access_token,
        )

        logger.info(f"Project '{project.name}' created by {self.user_id}")
        return ProjectResponse.build(project, ProjectRole.OWNER, 1)

    async def update_project(self, project_id: UUID, data: ProjectUpdate) -> ProjectResponse:
        """
        Update a project. Owners and admins only.
        """
        membership = await self.require_manager(project_id)
        changes = self.serialize_pydantic_to_dict(data, exclude_unset=True)
        if not changes:
            return await self.get_project(project_id)
        if changes.get("organization_id"):
            await self._require_project_creator(data.organization_id)

        project = await self._update(project_id, changes)
        logger.info(f"Project {project_id} updated: {', '.join(changes)}")
        return ProjectResponse.build(
            project, membership.role, await self._member_count(project_id)
        )

    async def archive_project(self, project_id: UUID) -> ProjectResponse:
        """
        Archive a project. Owners and admins only.
        :param project_id: Project ID.
        :return: The archived project.
        """
        membership = await self.require_manager(project_id)
        project = await self._load_project(project_id)
        if project.is_archived:
            raise ValidationException("Project is already archived", "status")

        project = await self._update(project_id, {"status": ProjectStatus.ARCHIVED.value})
        logger.info(f"Project '{project.name}' archived by {self.user_id}")
        return ProjectResponse.build(
            project, membership.role, await self._member_count(project_id)
        )

    async def delete_project(self, project_id: UUID) -> Project:
        """
        Delete a project. Owner only; its members and tickets go with it.
        :param project_id: Project ID.
        :return: The deleted project.
        """
        membership = await self.require_membership(project_id)
        if not permissions.can_delete_project(membership.role):
            raise ForbiddenException("Only the project owner can delete the project")

        project = await self._load_project(project_id)
        await self.backend.delete(
            PROJECTS,
            filters={"id": str(project_id)},
            access_token=self.access_token,
        )
        logger.info(f"Project '{project.name}' deleted by {self.user_id}")
        return project

    # Members

    async def list_members(
        self, project_id: UUID, viewer: Optional[ProjectMember] = None
    ) -> List[ProjectMemberResponse]:
        """
        Members of a project with their profile, oldest first.
        :param project_id: Project ID.
        :param viewer: The caller's membership when already loaded.
        :return: Member rows with the actions available to the caller.
        """
        if viewer is None:
            viewer = await self.require_membership(project_id)

        members = [
            ProjectMember.from_row(row)
            for row in await self.backend.select(
                MEMBERS,
                filters={"project_id": str(project_id)},
                order="created_at.asc",
                access_token=self.access_token,
            )
        ]
        profiles = await self.users.get_profiles(m.user_id for m in members)
        return [
            ProjectMemberResponse.build(member, profiles.get(member.user_id), viewer.role)
            for member in members
        ]

    async def invite_member(
        self, project_id: UUID, invite: ProjectMemberInvite
    ) -> ProjectMemberResponse:
        """
        Add an existing account to the project.
        """
        membership = await self.require_manager(project_id)

        profile = await self.users.get_profile_by_email(invite.email)
        if profile is None:
            raise ValidationException("User with this email does not exist", "email")

        if await self.get_membership(project_id, profile.id) is not None:
            raise ConflictError("User is already a member of this project", "project_member")

        rows = await self.backend.insert(
            MEMBERS,
            {
                "project_id": str(project_id),
                "user_id": str(profile.id),
                "role": invite.role.value,
                "invited_by": str(self.user_id),
            },
            access_token=self.access_token,
        )
        logger.info(f"{invite.email} invited to project {project_id} as {invite.role.value}")
        return ProjectMemberResponse.build(
            ProjectMember.from_row(rows[0]), profile, membership.role
        )

    async def _load_member(self, project_id: UUID, member_id: UUID) -> ProjectMember:
        row = await self.backend.select_one(
            MEMBERS,
            filters={"id": str(member_id), "project_id": str(project_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise NotFoundException("Member", str(member_id))
        return ProjectMember.from_row(row)

    async def update_member_role(
        self, project_id: UUID, member_id: UUID, data: ProjectMemberUpdate
    ) -> ProjectMemberResponse:
        membership = await self.require_manager(project_id)
        target = await self._load_member(project_id, member_id)
        if target.is_owner:
            raise ForbiddenException("The owner's role cannot be changed")

        rows = await self.backend.update(
            MEMBERS,
            {"role": data.role.value},
            filters={"id": str(member_id)},
            access_token=self.access_token,
        )
        updated = ProjectMember.from_row(rows[0]) if rows else target
        profiles = await self.users.get_profiles([updated.user_id])
        return ProjectMemberResponse.build(
            updated, profiles.get(updated.user_id), membership.role
        )

    async def remove_member(self, project_id: UUID, member_id: UUID) -> ProjectMemberResponse:
        membership = await self.require_manager(project_id)
        target = await self._load_member(project_id, member_id)
        if target.is_owner:
            raise ForbiddenException("The project owner cannot be removed")

        await self.backend.delete(
            MEMBERS,
            filters={"id": str(member_id)},
            access_token=self.access_token,
        )
        profiles = await self.users.get_profiles([target.user_id])
        logger.info(f"Member {member_id} removed from project {project_id}")
        return ProjectMemberResponse.build(
            target, profiles.get(target.user_id), membership.role
        )

    async def leave_project(self, project_id: UUID) -> None:
        """
        Remove the caller from a project. Owners cannot leave their own project.
        """
        membership = await self.require_membership(project_id)
        if membership.is_owner:
            raise ValidationException("Project owners cannot leave their own project")

        await self.backend.delete(
            MEMBERS,
            filters={"project_id": str(project_id), "user_id": str(self.user_id)},
            access_token=self.access_token,
        )
        logger.info(f"User {self.user_id} left project {project_id}")
