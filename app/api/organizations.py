from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_session
from app.core.exceptions import toast_on_error
from app.core.utils import SearchUtils
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import UserSession
from app.schemas.organization import (
    MemberInvite,
    MemberRoleUpdate,
    OrganizationCreate,
    OrganizationMemberResponse,
    OrganizationResponse,
    OrganizationUpdate,
    UserPermissionResponse,
)
from app.schemas.responses import (
    DataResponse,
    EmptyState,
    ListResponse,
    MessageResponse,
    list_response,
    success_toast,
)
from app.services.organization_service import OrganizationService

router = APIRouter(prefix="/organizations", tags=["Organizations"])


def _empty_state(has_any: bool) -> EmptyState:
    if not has_any:
        return EmptyState(
            title="No organizations yet",
            description="Create your first organization to get started with team collaboration.",
        )
    return EmptyState(
        title="No organizations found",
        description="Try adjusting your search criteria.",
    )


@router.get("/", response_model=ListResponse)
@toast_on_error("Error loading organizations")
async def list_organizations(
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
    search: Annotated[Optional[str], Query(description="Match name or description")] = None,
) -> ListResponse:
    """
    List the caller's organizations, most recently updated first.
    """
    organizations = await OrganizationService(backend, session).list_organizations()
    filtered = SearchUtils.filter_items(
        organizations, search, lambda org: (org.name, org.description)
    )
    return list_response(
        filtered,
        total=len(organizations),
        message="Organizations retrieved successfully",
        empty_state=_empty_state(bool(organizations)),
    )


@router.post(
    "/",
    response_model=DataResponse[OrganizationResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Error creating organization")
async def create_organization(
    data: OrganizationCreate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[OrganizationResponse]:
    """
    Create a new organization; the caller becomes its owner.
    """
    organization = await OrganizationService(backend, session).create_organization(data)
    return DataResponse(
        message="Organization created successfully",
        data=organization,
        toast=success_toast(
            "Organization created!",
            "Your new organization has been created successfully.",
        ),
    )


@router.get("/{org_id}", response_model=DataResponse[OrganizationResponse])
@toast_on_error("Error loading organization")
async def get_organization(
    org_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[OrganizationResponse]:
    organization = await OrganizationService(backend, session).get_organization(org_id)
    return DataResponse(message="Organization retrieved successfully", data=organization)


@router.put("/{org_id}", response_model=DataResponse[OrganizationResponse])
@toast_on_error("Error updating organization")
async def update_organization(
    org_id: UUID,
    data: OrganizationUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[OrganizationResponse]:
    """
    Update organization information. Owners and admins only.
    """
    organization = await OrganizationService(backend, session).update_organization(
        org_id, data
    )
    return DataResponse(
        message="Organization updated successfully",
        data=organization,
        toast=success_toast("Organization updated", f"{organization.name} has been updated."),
    )


@router.delete("/{org_id}", response_model=MessageResponse)
@toast_on_error("Error deleting organization")
async def delete_organization(
    org_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    """
    Delete an organization. Owner only.
    """
    organization = await OrganizationService(backend, session).delete_organization(org_id)
    return MessageResponse(
        message="Organization deleted successfully",
        toast=success_toast("Organization deleted", f"{organization.name} has been deleted."),
    )


# Members


@router.get("/{org_id}/members", response_model=DataResponse[List[OrganizationMemberResponse]])
@toast_on_error("Error loading members")
async def list_members(
    org_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[List[OrganizationMemberResponse]]:
    members = await OrganizationService(backend, session).list_members(org_id)
    return DataResponse(message="Members retrieved successfully", data=members)


@router.post(
    "/{org_id}/members",
    response_model=DataResponse[OrganizationMemberResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Error inviting member")
async def invite_member(
    org_id: UUID,
    invite: MemberInvite,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[OrganizationMemberResponse]:
    """
    Invite an existing user to the organization by e-mail.
    """
    member = await OrganizationService(backend, session).invite_member(org_id, invite)
    return DataResponse(
        message="Member invited successfully",
        data=member,
        toast=success_toast(
            "Member invited!", f"{invite.email} has been invited to the organization."
        ),
    )


@router.put(
    "/{org_id}/members/{member_id}",
    response_model=DataResponse[OrganizationMemberResponse],
)
@toast_on_error("Error updating role")
async def update_member_role(
    org_id: UUID,
    member_id: UUID,
    data: MemberRoleUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[OrganizationMemberResponse]:
    member = await OrganizationService(backend, session).update_member_role(
        org_id, member_id, data
    )
    return DataResponse(
        message="Member role updated successfully",
        data=member,
        toast=success_toast("Role updated", "Member role has been updated successfully."),
    )


@router.delete("/{org_id}/members/{member_id}", response_model=MessageResponse)
@toast_on_error("Error removing member")
async def remove_member(
    org_id: UUID,
    member_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    member = await OrganizationService(backend, session).remove_member(org_id, member_id)
    return MessageResponse(
        message="Member removed successfully",
        toast=success_toast(
            "Member removed", f"{member.name} has been removed from the organization."
        ),
    )


@router.get(
    "/{org_id}/permissions",
    response_model=DataResponse[List[UserPermissionResponse]],
)
@toast_on_error("Error loading permissions")
async def get_user_permissions(
    org_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
    user_id: Annotated[Optional[UUID], Query(description="Defaults to the caller")] = None,
) -> DataResponse[List[UserPermissionResponse]]:
    """
    Explicit permissions of a user in the organization.
    """
    records = await OrganizationService(backend, session).get_user_permissions(
        org_id, user_id
    )
    return DataResponse(
        message="Permissions retrieved successfully",
        data=[UserPermissionResponse.from_record(r) for r in records],
    )
