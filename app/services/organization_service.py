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
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember, OrganizationRole
from app.models.user_permission import UserPermission
from app.schemas.organization import (
    MemberInvite,
    MemberRoleUpdate,
    OrganizationCreate,
    OrganizationMemberResponse,
    OrganizationResponse,
    OrganizationUpdate,
)
from app.services.common import CommonService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

ORGANIZATIONS = Organization.table_name()
MEMBERS = OrganizationMember.table_name()


def organization_not_found(org_id: UUID) -> NotFoundException:
    exc = NotFoundException(
        "Organization",
        str(org_id),
        message="The organization you are looking for does not exist.",
    )
    exc.toast_title = "Organization not found"
    return exc


class OrganizationService(CommonService):
    """Organization management service with member operations"""

    @property
    def users(self) -> UserService:
        return UserService(self.backend, self.session)

    async def get_membership(
        self, org_id: UUID, user_id: Optional[UUID] = None
    ) -> Optional[OrganizationMember]:
        """
        Get the membership row of a user in an organization.
        :param org_id: Organization ID.
        :param user_id: User ID, defaults to the caller.
        :return: OrganizationMember or None if the user is not a member.
        """
        row = await self.backend.select_one(
            MEMBERS,
            filters={
                "organization_id": str(org_id),
                "user_id": str(user_id or self.user_id),
            },
            access_token=self.access_token,
        )
        return OrganizationMember.from_row(row) if row else None

    async def require_membership(self, org_id: UUID) -> OrganizationMember:
        """
        Get the caller's membership; organizations the caller is not part of
        are reported as missing.
        """
        membership = await self.get_membership(org_id)
        if membership is None:
            raise organization_not_found(org_id)
        return membership

    async def require_manager(self, org_id: UUID) -> OrganizationMember:
        membership = await self.require_membership(org_id)
        if not permissions.can_manage_organization(membership.role):
            raise ForbiddenException(
                "Only organization owners and admins can do this"
            )
        return membership

    async def _load_organization(self, org_id: UUID) -> Organization:
        row = await self.backend.select_one(
            ORGANIZATIONS,
            filters={"id": str(org_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise organization_not_found(org_id)
        return Organization.from_row(row)

    async def _member_count(self, org_id: UUID) -> int:
        return await self.backend.count(
            MEMBERS,
            filters={"organization_id": str(org_id)},
            access_token=self.access_token,
        )

    async def list_organizations(self) -> List[OrganizationResponse]:
        """
        Organizations the caller belongs to, most recently updated first.
        :return: Organizations with the caller's role and their member count.
        """
        memberships = [
            OrganizationMember.from_row(row)
            for row in await self.backend.select(
                MEMBERS,
                filters={"user_id": str(self.user_id)},
                access_token=self.access_token,
            )
        ]
        if not memberships:
            return []

        roles = {m.organization_id: m.role for m in memberships}
        rows = await self.backend.select(
            ORGANIZATIONS,
            filters={"id": [str(org_id) for org_id in roles]},
            order="updated_at.desc",
            access_token=self.access_token,
        )
        organizations = [Organization.from_row(row) for row in rows]
        counts = await self.count_rows_by(
            MEMBERS, "organization_id", [org.id for org in organizations]
        )

        return [
            OrganizationResponse.build(org, roles[org.id], counts[org.id])
            for org in organizations
        ]

    async def get_organization(self, org_id: UUID) -> OrganizationResponse:
        """
        Get one organization the caller belongs to.
        :param org_id: Organization ID.
        :return: OrganizationResponse
        """
        membership = await self.require_membership(org_id)
        organization = await self._load_organization(org_id)
        return OrganizationResponse.build(
            organization, membership.role, await self._member_count(org_id)
        )

    async def create_organization(self, data: OrganizationCreate) -> OrganizationResponse:
        """
        Create an organization and make the caller its owner.
        :param data: OrganizationCreate schema.
        :return: The new organization with role owner and one member.
        """
        rows = await self.backend.insert(
            ORGANIZATIONS,
            {"name": data.name, "description": data.description or ""},
            access_token=self.access_token,
        )
        organization = Organization.from_row(rows[0])

        await self.backend.insert(
            MEMBERS,
            {
                "organization_id": str(organization.id),
                "user_id": str(self.user_id),
                "role": OrganizationRole.OWNER.value,
                "invited_by": str(self.user_id),
            },
            access_token=self.access_token,
        )

        logger.info(f"Organization '{organization.name}' created by {self.user_id}")
        return OrganizationResponse.build(organization, OrganizationRole.OWNER, 1)

    async def update_organization(
        self, org_id: UUID, data: OrganizationUpdate
    ) -> OrganizationResponse:
        """
        Update an organization. Owners and admins only.
        :param org_id: Organization ID.
        :param data: Fields to change.
        :return: The updated organization.
        """
        membership = await self.require_manager(org_id)
        changes = self.serialize_pydantic_to_dict(data, exclude_unset=True)
        if not changes:
            return await self.get_organization(org_id)

        rows = await self.backend.update(
            ORGANIZATIONS,
            changes,
            filters={"id": str(org_id)},
            access_token=self.access_token,
        )
        if not rows:
            raise organization_not_found(org_id)

        logger.info(f"Organization {org_id} updated: {', '.join(changes)}")
        return OrganizationResponse.build(
            Organization.from_row(rows[0]),
            membership.role,
            await self._member_count(org_id),
        )

    async def delete_organization(self, org_id: UUID) -> Organization:
        """
        Delete an organization. Owner only; the backend removes its members,
        projects and tickets with it.
        :param org_id: Organization ID.
        :return: The deleted organization.
        """
        membership = await self.require_membership(org_id)
        if not permissions.can_delete_organization(membership.role):
            raise ForbiddenException("Only the owner can delete the organization")

        organization = await self._load_organization(org_id)
        await self.backend.delete(
            ORGANIZATIONS,
            filters={"id": str(org_id)},
            access_token=self.access_token,
        )
        logger.info(f"Organization '{organization.name}' deleted by {self.user_id}")
        return organization

    # Members

    async def list_members(self, org_id: UUID) -> List[OrganizationMemberResponse]:
        """
        Members of an organization with their profile, oldest first.
        :param org_id: Organization ID.
        :return: Member rows with the actions available to the caller.
        """
        membership = await self.require_membership(org_id)
        members = [
            OrganizationMember.from_row(row)
            for row in await self.backend.select(
                MEMBERS,
                filters={"organization_id": str(org_id)},
                order="created_at.asc",
                access_token=self.access_token,
            )
        ]
        profiles = await self.users.get_profiles(m.user_id for m in members)
        return [
            OrganizationMemberResponse.build(
                member, profiles.get(member.user_id), membership.role
            )
            for member in members
        ]

    async def invite_member(
        self, org_id: UUID, invite: MemberInvite
    ) -> OrganizationMemberResponse:
        """
        Add an existing account to the organization.
        :param org_id: Organization ID.
        :param invite: E-mail and role of the new member.
        :return: The new member row.
        """
        membership = await self.require_manager(org_id)

        profile = await self.users.get_profile_by_email(invite.email)
        if profile is None:
            raise ValidationException("User with this email does not exist", "email")

        if await self.get_membership(org_id, profile.id) is not None:
            raise ConflictError(
                "User is already a member of this organization", "organization_member"
            )

        rows = await self.backend.insert(
            MEMBERS,
            {
                "organization_id": str(org_id),
                "user_id": str(profile.id),
                "role": invite.role.value,
                "invited_by": str(self.user_id),
            },
            access_token=self.access_token,
        )
        logger.info(f"{invite.email} invited to organization {org_id} as {invite.role.value}")
        return OrganizationMemberResponse.build(
            OrganizationMember.from_row(rows[0]), profile, membership.role
        )

    async def _load_member(self, org_id: UUID, member_id: UUID) -> OrganizationMember:
        row = await self.backend.select_one(
            MEMBERS,
            filters={"id": str(member_id), "organization_id": str(org_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise NotFoundException("Member", str(member_id))
        return OrganizationMember.from_row(row)

    async def update_member_role(
        self, org_id: UUID, member_id: UUID, data: MemberRoleUpdate
    ) -> OrganizationMemberResponse:
        """
        Change a member's role between admin and member.
        :param org_id: Organization ID.
        :param member_id: Membership row ID.
        :param data: New role.
        :return: The updated member row.
        """
        membership = await self.require_manager(org_id)
        target = await self._load_member(org_id, member_id)
        if target.is_owner:
            raise ForbiddenException("The owner's role cannot be changed")

        rows = await self.backend.update(
            MEMBERS,
            {"role": data.role.value},
            filters={"id": str(member_id)},
            access_token=self.access_token,
        )
        updated = OrganizationMember.from_row(rows[0]) if rows else target
        profiles = await self.users.get_profiles([updated.user_id])
        logger.info(f"Member {member_id} of organization {org_id} is now {data.role.value}")
        return OrganizationMemberResponse.build(
            updated, profiles.get(updated.user_id), membership.role
        )

    async def remove_member(
        self, org_id: UUID, member_id: UUID
    ) -> OrganizationMemberResponse:
        """
        Remove a member from the organization.
        :param org_id: Organization ID.
        :param member_id: Membership row ID.
        :return: The removed member row.
        """
        membership = await self.require_manager(org_id)
        target = await self._load_member(org_id, member_id)
        if target.is_owner:
            raise ForbiddenException("The organization owner cannot be removed")

        await self.backend.delete(
            MEMBERS,
            filters={"id": str(member_id)},
            access_token=self.access_token,
        )
        profiles = await self.users.get_profiles([target.user_id])
        logger.info(f"Member {member_id} removed from organization {org_id}")
        return OrganizationMemberResponse.build(
            target, profiles.get(target.user_id), membership.role
        )

    async def get_user_permissions(
        self, org_id: UUID, user_id: Optional[UUID] = None
    ) -> List[UserPermission]:
        """
        Explicit permissions of a user in an organization.
        :param org_id: Organization ID.
        :param user_id: User to inspect, defaults to the caller. Inspecting
            someone else requires owner or admin.
        :return: Permission rows.
        """
        if user_id is not None and user_id != self.user_id:
            await self.require_manager(org_id)
        else:
            await self.require_membership(org_id)

        rows = await self.backend.select(
            UserPermission.table_name(),
            filters={
                "organization_id": str(org_id),
                "user_id": str(user_id or self.user_id),
            },
            access_token=self.access_token,
        )
        return [UserPermission.from_row(row) for row in rows]
