import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from app.core import permissions
from app.core.utils import DisplayUtils
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember, OrganizationRole
from app.models.user_permission import UserPermission
from app.models.user_profile import UserProfile

ROLE_BADGES = {
    OrganizationRole.OWNER: "default",
    OrganizationRole.ADMIN: "secondary",
    OrganizationRole.MEMBER: "outline",
}


def _check_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Organization name is required")
    if len(v) < 3:
        raise ValueError("Organization name must be at least 3 characters")
    if len(v) > 100:
        raise ValueError("Organization name must be less than 100 characters")
    return v


def _check_description(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) > 500:
        raise ValueError("Description must be less than 500 characters")
    return v


class OrganizationCreate(BaseModel):
    """Schema for creating a new organization"""

    name: str = Field(..., description="Organization name (3-100 characters)")
    description: Optional[str] = Field(
        None, description="Organization description (up to 500 characters)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information"""

    name: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def reject_null_name(cls, v):
        if v is None:
            raise ValueError("Organization name is required")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)


class OrganizationResponse(BaseModel):
    """Organization card with the caller's role and allowed actions"""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_role: OrganizationRole
    member_count: int

    # Display
    member_label: str
    created_label: str
    role_badge: str

    # Actions
    can_manage: bool
    can_delete: bool

    @classmethod
    def build(
        cls,
        organization: Organization,
        user_role: OrganizationRole,
        member_count: int,
    ) -> "OrganizationResponse":
        return cls(
            **organization.model_dump(
                include={"id", "name", "description", "logo_url", "created_at", "updated_at"}
            ),
            user_role=user_role,
            member_count=member_count,
            member_label=DisplayUtils.member_count_label(member_count),
            created_label=DisplayUtils.date_label(organization.created_at),
            role_badge=ROLE_BADGES[OrganizationRole(user_role)],
            can_manage=permissions.can_manage_organization(user_role),
            can_delete=permissions.can_delete_organization(user_role),
        )


class MemberInvite(BaseModel):
    """Schema for inviting a member by e-mail"""

    email: EmailStr = Field(..., description="E-mail of an existing account")
    role: OrganizationRole = Field(OrganizationRole.MEMBER, description="Role to assign")

    @field_validator("email", mode="wrap")
    @classmethod
    def validate_email(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            raise ValueError("Invalid email address")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: OrganizationRole) -> OrganizationRole:
        if v == OrganizationRole.OWNER:
            raise ValueError("Members can only be invited as admin or member")
        return v


class MemberRoleUpdate(BaseModel):
    """Schema for changing a member's role"""

    role: OrganizationRole = Field(..., description="New role, admin or member")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: OrganizationRole) -> OrganizationRole:
        if v == OrganizationRole.OWNER:
            raise ValueError("Role must be admin or member")
        return v


class OrganizationMemberResponse(BaseModel):
    """Member row as shown in the members list"""

    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID
    role: OrganizationRole
    invited_by: Optional[uuid.UUID] = None
    joined_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    name: str
    email: str
    initial: str
    role_badge: str

    # Actions available to the caller on this row
    can_change_role: bool
    next_role: Optional[OrganizationRole] = None
    can_remove: bool

    @classmethod
    def build(
        cls,
        member: OrganizationMember,
        profile: Optional[UserProfile],
        viewer_role: Optional[OrganizationRole],
    ) -> "OrganizationMemberResponse":
        name = profile.name if profile else None
        email = profile.email if profile else None
        can_change = permissions.can_change_member(viewer_role, member.role)
        return cls(
            **member.model_dump(
                include={
                    "id",
                    "organization_id",
                    "user_id",
                    "role",
                    "invited_by",
                    "joined_at",
                    "created_at",
                }
            ),
            name=name or "Unknown User",
            email=email or "No email",
            initial=DisplayUtils.initial(name, email),
            role_badge=ROLE_BADGES[member.role],
            can_change_role=can_change,
            next_role=permissions.toggled_member_role(member.role) if can_change else None,
            can_remove=can_change,
        )


class UserPermissionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID
    permission: str
    granted_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: UserPermission) -> "UserPermissionResponse":
        return cls.model_validate(record.model_dump())


__all__ = [
    "OrganizationCreate",
    "OrganizationUpdate",
    "OrganizationResponse",
    "MemberInvite",
    "MemberRoleUpdate",
    "OrganizationMemberResponse",
    "UserPermissionResponse",
]
