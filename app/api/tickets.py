from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_session
from app.core.exceptions import toast_on_error
from app.core.utils import SearchUtils
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import UserSession
from app.schemas.responses import (
    DataResponse,
    EmptyState,
    ListResponse,
    MessageResponse,
    list_response,
    success_toast,
)
from app.schemas.ticket import TicketCreate, TicketResponse, TicketUpdate
from app.services.ticket_service import TicketService

router = APIRouter(prefix="/tickets", tags=["Tickets"])

NO_TICKETS = EmptyState(
    title="No tickets found",
    description="No tickets found for this project. Create your first ticket to get started!",
)


@router.get("/project/{project_id}", response_model=ListResponse)
@toast_on_error("Error loading tickets")
async def list_tickets(
    project_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
    search: Annotated[Optional[str], Query(description="Match title or description")] = None,
) -> ListResponse:
    """
    Tickets of a project, newest first.
    """
    tickets = await TicketService(backend, session).list_tickets(project_id)
    filtered = SearchUtils.filter_items(tickets, search, lambda t: (t.title, t.description))
    return list_response(
        filtered,
        total=len(tickets),
        message="Tickets retrieved successfully",
        empty_state=NO_TICKETS,
    )


@router.post(
    "/",
    response_model=DataResponse[TicketResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Error creating ticket")
async def create_ticket(
    data: TicketCreate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[TicketResponse]:
    """
    Create a ticket in a project.
    """
    ticket = await TicketService(backend, session).create_ticket(data)
    return DataResponse(
        message="Ticket created successfully",
        data=ticket,
        toast=success_toast("Success", "Ticket created successfully!"),
    )


@router.get("/{ticket_id}", response_model=DataResponse[TicketResponse])
@toast_on_error("Error loading ticket")
async def get_ticket(
    ticket_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[TicketResponse]:
    ticket = await TicketService(backend, session).get_ticket(ticket_id)
    return DataResponse(message="Ticket retrieved successfully", data=ticket)


@router.put("/{ticket_id}", response_model=DataResponse[TicketResponse])
@toast_on_error("Error updating ticket")
async def update_ticket(
    ticket_id: UUID,
    data: TicketUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[TicketResponse]:
    ticket = await TicketService(backend, session).update_ticket(ticket_id, data)
    return DataResponse(
        message="Ticket updated successfully",
        data=ticket,
        toast=success_toast("Success", "Ticket updated successfully!"),
    )


@router.delete("/{ticket_id}", response_model=MessageResponse)
@toast_on_error("Error deleting ticket")
async def delete_ticket(
    ticket_id: UUID,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    ticket = await TicketService(backend, session).delete_ticket(ticket_id)
    return MessageResponse(
        message="Ticket deleted successfully",
        toast=success_toast("Ticket deleted", f"{ticket.title} has been deleted."),
    )
