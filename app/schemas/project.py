import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from app.core import permissions
from app.core.utils import DisplayUtils
from app.models.project import Project, ProjectStatus
from app.models.project_member import ProjectMember, ProjectRole
from app.models.user_profile import UserProfile
from app.schemas.user import ProfileSummary

ROLE_BADGES = {
    ProjectRole.OWNER: "default",
    ProjectRole.ADMIN: "secondary",
    ProjectRole.DEVELOPER: "outline",
    ProjectRole.VIEWER: "outline",
}

# Organization selector value for projects without an organization
PERSONAL_PROJECT = "personal"


def _check_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Project name is required")
    if len(v) < 3:
        raise ValueError("Project name must be at least 3 characters")
    if len(v) > 100:
        raise ValueError("Project name must be less than 100 characters")
    return v


def _check_description(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) > 500:
        raise ValueError("Description must be less than 500 characters")
    return v


class ProjectCreate(BaseModel):
    """Schema for creating a new project"""

    name: str = Field(..., description="Project name (3-100 characters)")
    description: Optional[str] = Field(None, description="Up to 500 characters")
    status: ProjectStatus = Field(
        ProjectStatus.PLANNING, description="Initial status, active or planning"
    )
    organization_id: Optional[uuid.UUID] = Field(
        None, description="Organization ID, empty for a personal project"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: ProjectStatus) -> ProjectStatus:
        if v == ProjectStatus.ARCHIVED:
            raise ValueError("New projects must be active or planning")
        return v

    @field_validator("organization_id", mode="before")
    @classmethod
    def validate_organization(cls, v):
        if v in ("", PERSONAL_PROJECT):
            return None
        return v


class ProjectUpdate(BaseModel):
    """Schema for updating project information"""

    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    organization_id: Optional[uuid.UUID] = Field(
        None, description="Move to another organization, \"personal\" to detach"
    )

    @field_validator("name", "status", mode="before")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        # Only called for fields present in the request; these columns are NOT NULL
        if v is None:
            raise ValueError(
                "Project name is required" if info.field_name == "name" else "Status is required"
            )
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("organization_id", mode="before")
    @classmethod
    def validate_organization(cls, v):
        if v in ("", PERSONAL_PROJECT):
            return None
        return v


class ProjectResponse(BaseModel):
    """Project card with the caller's role and allowed actions"""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    owner_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    status: ProjectStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_role: ProjectRole
    member_count: int

    # Display
    initial: str
    member_label: str
    updated_label: str
    role_badge: str

    # Actions
    can_manage: bool
    can_archive: bool
    can_delete: bool

    @classmethod
    def build(
        cls, project: Project, user_role: ProjectRole, member_count: int
    ) -> "ProjectResponse":
        return cls(
            **project.model_dump(
                include={
                    "id",
                    "name",
                    "description",
                    "owner_id",
                    "organization_id",
                    "status",
                    "created_at",
                    "updated_at",
                }
            ),
            user_role=user_role,
            member_count=member_count,
            initial=DisplayUtils.initial(project.name),
            member_label=DisplayUtils.member_count_label(member_count),
            updated_label=(
                f"Updated {DisplayUtils.distance_to_now(project.updated_at)}"
                if project.updated_at
                else ""
            ),
            role_badge=ROLE_BADGES[ProjectRole(user_role)],
            can_manage=permissions.can_manage_project(user_role),
            can_archive=permissions.can_archive_project(user_role, project.status),
            can_delete=permissions.can_delete_project(user_role),
        )


class ProjectMemberInvite(BaseModel):
    """Schema for inviting a member to a project by e-mail"""

    email: EmailStr = Field(..., description="E-mail of an existing account")
    role: ProjectRole = Field(ProjectRole.DEVELOPER, description="Role to assign")

    @field_validator("email", mode="wrap")
    @classmethod
    def validate_email(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            raise ValueError("Invalid email address")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: ProjectRole) -> ProjectRole:
        if v == ProjectRole.OWNER:
            raise ValueError("Members can only be invited as admin, developer or viewer")
        return v


class ProjectMemberUpdate(BaseModel):
    """Schema for updating project member role"""

    role: ProjectRole = Field(..., description="New role for the member")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: ProjectRole) -> ProjectRole:
        if v == ProjectRole.OWNER:
            raise ValueError("Role must be admin, developer or viewer")
        return v


class ProjectMemberResponse(BaseModel):
    """Project member row"""

    id: uuid.UUID
    project_id: uuid.UUID
    user_id: uuid.UUID
    role: ProjectRole
    invited_by: Optional[uuid.UUID] = None
    joined_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    name: str
    email: str
    initial: str
    role_badge: str
    can_change_role: bool
    can_remove: bool

    @classmethod
    def build(
        cls,
        member: ProjectMember,
        profile: Optional[UserProfile],
        viewer_role: Optional[ProjectRole],
    ) -> "ProjectMemberResponse":
        name = profile.name if profile else None
        email = profile.email if profile else None
        can_change = permissions.can_change_project_member(viewer_role, member.role)
        return cls(
            **member.model_dump(
                include={
                    "id",
                    "project_id",
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
            can_remove=can_change,
        )


class ProjectDetailsResponse(BaseModel):
    """Everything the project page needs in one response"""

    project: ProjectResponse
    members: List[ProjectMemberResponse]
    assignees: List[ProfileSummary] = Field(
        ..., description="Profiles that tickets can be assigned to"
    )
    can_create_tickets: bool


__all__ = [
    "PERSONAL_PROJECT",
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectResponse",
    "ProjectMemberInvite",
    "ProjectMemberUpdate",
    "ProjectMemberResponse",
    "ProjectDetailsResponse",
]
