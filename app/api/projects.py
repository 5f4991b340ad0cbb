from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_session
from app.core.exceptions import toast_on_error
from app.core.utils import ALL, SearchUtils
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import UserSession
from app.schemas.project import (
    ProjectCreate,
    ProjectDetailsResponse,
    ProjectMemberInvite,
    ProjectMemberResponse,
    ProjectMemberUpdate,
    ProjectResponse,
    ProjectUpdate,
)
from app.schemas.responses import (
    DataResponse,
    EmptyState,
    ListResponse,
    MessageResponse,
    list_response,
    success_toast,
)
from app.services.project_service import ProjectService

router = APIRouter(prefix="/projects", tags=["Projects"])


def _empty_state(has_any: bool) -> EmptyState:
    if not has_any:
        return EmptyState(
            title="No projects yet",
            description="Create your first project to get started with issue tracking.",
        )
    return EmptyState(
        title="No projects found",
        description="Try adjusting your search or filter criteria.",
    )


@router.get("/", response_model=ListResponse)
@toast_on_error("Error loading projects")
async def list_projects(
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
    search: Annotated[Optional[str], Query(description="Match name or description")] = None,
    status_filter: Annotated[
        str, Query(alias="status", description="Project status or 'all'")
    ] = ALL,
    role: Annotated[str, Query(description="Caller's role or 'all'")] = ALL,
    organization_id: Annotated[
        Optional[UUID], Query(description="Only projects of this organization")
    ] = None,
) -> ListResponse:
    """
    List the caller's projects, most recently updated first.
    Search, status and role filters are applied to the loaded list.
    """
    projects = await ProjectService(backend, session).list_projects(organization_id)
    filtered = [
        project
        for project in SearchUtils.filter_items(
            projects, search, lambda p: (p.name, p.description)
        )
        if SearchUtils.matches_choice(project.status.value, status_filter)
        and SearchUtils.matches_choice(project.user_role.value, role)
    ]
    return list_response(
        filtered,
        total=len(projects),
        message="Projects retrieved successfully",
        empty_state=_empty_state(bool(projects)),
    )


@router.post(
    "/",
    response_model=DataResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Error creating project")
async def create_project(
    data: ProjectCreate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectResponse]:
    """
    Create a personal or organization project; the caller becomes its owner.
    """
    project = await ProjectService(backend, session).create_project(data)
    return DataResponse(
        message="Project created successfully",
        data=project,
        toast=success_toast(
            "Project created!", "Your new project has been created successfully."
        ),
    )


@router.get("/{project_id}", response_model=DataResponse[ProjectResponse])
@toast_on_error("Error loading project")
async def get_project(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectResponse]:
    project = await ProjectService(backend, session).get_project(project_id)
    return DataResponse(message="Project retrieved successfully", data=project)


@router.get("/{project_id}/details", response_model=DataResponse[ProjectDetailsResponse])
@toast_on_error("Error loading project")
async def get_project_details(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectDetailsResponse]:
    """
    The project page: project, members and assignable profiles.
    """
    details = await ProjectService(backend, session).get_project_details(project_id)
    return DataResponse(message="Project retrieved successfully", data=details)


@router.put("/{project_id}", response_model=DataResponse[ProjectResponse])
@toast_on_error("Error updating project")
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectResponse]:
    project = await ProjectService(backend, session).update_project(project_id, data)
    return DataResponse(
        message="Project updated successfully",
        data=project,
        toast=success_toast("Project updated", f"{project.name} has been updated."),
    )


@router.post("/{project_id}/archive", response_model=DataResponse[ProjectResponse])
@toast_on_error("Error archiving project")
async def archive_project(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectResponse]:
    project = await ProjectService(backend, session).archive_project(project_id)
    return DataResponse(
        message="Project archived successfully",
        data=project,
        toast=success_toast("Project archived", f"{project.name} has been archived."),
    )


@router.delete("/{project_id}", response_model=MessageResponse)
@toast_on_error("Error deleting project")
async def delete_project(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    """
    Delete a project. Owner only.
    """
    project = await ProjectService(backend, session).delete_project(project_id)
    return MessageResponse(
        message="Project deleted successfully",
        toast=success_toast("Project deleted", f"{project.name} has been deleted."),
    )


# Members


@router.get("/{project_id}/members", response_model=DataResponse[List[ProjectMemberResponse]])
@toast_on_error("Error loading members")
async def list_members(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[List[ProjectMemberResponse]]:
    members = await ProjectService(backend, session).list_members(project_id)
    return DataResponse(message="Members retrieved successfully", data=members)


@router.post(
    "/{project_id}/members",
    response_model=DataResponse[ProjectMemberResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Error inviting member")
async def invite_member(
    project_id: UUID,
    invite: ProjectMemberInvite,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectMemberResponse]:
    member = await ProjectService(backend, session).invite_member(project_id, invite)
    return DataResponse(
        message="Member invited successfully",
        data=member,
        toast=success_toast("Member invited!", f"{invite.email} has been added to the project."),
    )


@router.put(
    "/{project_id}/members/{member_id}",
    response_model=DataResponse[ProjectMemberResponse],
)
@toast_on_error("Error updating role")
async def update_member_role(
    project_id: UUID,
    member_id: UUID,
    data: ProjectMemberUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[ProjectMemberResponse]:
    member = await ProjectService(backend, session).update_member_role(
        project_id, member_id, data
    )
    return DataResponse(
        message="Member role updated successfully",
        data=member,
        toast=success_toast("Role updated", "Member role has been updated successfully."),
    )


@router.delete("/{project_id}/members/{member_id}", response_model=MessageResponse)
@toast_on_error("Error removing member")
async def remove_member(
    project_id: UUID,
    member_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    member = await ProjectService(backend, session).remove_member(project_id, member_id)
    return MessageResponse(
        message="Member removed successfully",
        toast=success_toast(
            "Member removed", f"{member.name} has been removed from the project."
        ),
    )


@router.post("/{project_id}/leave", response_model=MessageResponse)
@toast_on_error("Error leaving project")
async def leave_project(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    """
    Leave a project. Owners cannot leave their own project.
    """
    await ProjectService(backend, session).leave_project(project_id)
    return MessageResponse(message="Left project successfully")
