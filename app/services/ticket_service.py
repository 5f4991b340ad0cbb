import logging
from typing import List, Optional
from uuid import UUID

from app.core import permissions
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.models.project_member import ProjectMember
from app.models.ticket import Ticket
from app.schemas.ticket import TicketCreate, TicketResponse, TicketUpdate
from app.services.common import CommonService
from app.services.project_service import ProjectService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

TICKETS = Ticket.table_name()


class TicketService(CommonService):
    """Tickets of a project"""

    @property
    def projects(self) -> ProjectService:
        return ProjectService(self.backend, self.session)

    @property
    def users(self) -> UserService:
        return UserService(self.backend, self.session)

    async def _check_assignee(self, project_id: UUID, assignee: Optional[UUID]) -> None:
        if assignee is None:
            return
        if await self.projects.get_membership(project_id, assignee) is None:
            raise ValidationException(
                "Assignee must be a member of this project", "assignee"
            )

    async def _load_ticket(self, ticket_id: UUID) -> Ticket:
        row = await self.backend.select_one(
            TICKETS,
            filters={"id": str(ticket_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise NotFoundException("Ticket", str(ticket_id))
        return Ticket.from_row(row)

    async def _build(self, ticket: Ticket) -> TicketResponse:
        profiles = await self.users.get_profiles([ticket.assignee])
        return TicketResponse.build(ticket, profiles.get(ticket.assignee))

    async def _require_ticket_access(self, ticket_id: UUID) -> tuple[Ticket, ProjectMember]:
        ticket = await self._load_ticket(ticket_id)
        membership = await self.projects.get_membership(ticket.project_id)
        if membership is None:
            raise NotFoundException("Ticket", str(ticket_id))
        return ticket, membership

    async def list_tickets(self, project_id: UUID) -> List[TicketResponse]:
        """
        Tickets of a project, newest first, with their assignee.
        :param project_id: Project ID.
        :return: Ticket rows.
        """
        await self.projects.require_membership(project_id)
        tickets = [
            Ticket.from_row(row)
            for row in await self.backend.select(
                TICKETS,
                filters={"project_id": str(project_id)},
                order="created_at.desc",
                access_token=self.access_token,
            )
        ]
        profiles = await self.users.get_profiles(t.assignee for t in tickets)
        return [TicketResponse.build(t, profiles.get(t.assignee)) for t in tickets]

    async def get_ticket(self, ticket_id: UUID) -> TicketResponse:
        ticket, _ = await self._require_ticket_access(ticket_id)
        return await self._build(ticket)

    async def create_ticket(self, data: TicketCreate) -> TicketResponse:
        """
        Create a ticket. Viewers cannot create tickets and the assignee has to
        be a member of the project.
        :param data: TicketCreate schema.
        :return: The new ticket.
        """
        membership = await self.projects.require_membership(data.project_id)
        if not permissions.can_edit_tickets(membership.role):
            raise ForbiddenException("Viewers cannot create tickets")
        await self._check_assignee(data.project_id, data.assignee)

        rows = await self.backend.insert(
            TICKETS,
            {
                "title": data.title,
                "description": data.description or None,
                "priority": data.priority.value,
                "assignee": str(data.assignee) if data.assignee else None,
                "status": data.status.value,
                "project_id": str(data.project_id),
            },
            access_token=self.access_token,
        )
        ticket = Ticket.from_row(rows[0])
        logger.info(f"Ticket '{ticket.title}' created in project {ticket.project_id}")
        return await self._build(ticket)

    async def update_ticket(self, ticket_id: UUID, data: TicketUpdate) -> TicketResponse:
        """
        Update a ticket. Owners, admins and developers only.
        """
        ticket, membership = await self._require_ticket_access(ticket_id)
        if not permissions.can_edit_tickets(membership.role):
            raise ForbiddenException("Viewers cannot edit tickets")

        changes = self.serialize_pydantic_to_dict(data, exclude_unset=True)
        if not changes:
            return await self._build(ticket)
        if "assignee" in changes:
            await self._check_assignee(ticket.project_id, data.assignee)

        rows = await self.backend.update(
            TICKETS,
            changes,
            filters={"id": str(ticket_id)},
            access_token=self.access_token,
        )
        if not rows:
            raise NotFoundException("Ticket", str(ticket_id))
        logger.info(f"Ticket {ticket_id} updated: {', '.join(changes)}")
        return await self._build(Ticket.from_row(rows[0]))

    async def delete_ticket(self, ticket_id: UUID) -> Ticket:
        """
        Delete a ticket. Project owners and admins only.
        """
        ticket, membership = await self._require_ticket_access(ticket_id)
        if not permissions.can_delete_tickets(membership.role):
            raise ForbiddenException("Only project owners and admins can delete tickets")

        await self.backend.delete(
            TICKETS,
            filters={"id": str(ticket_id)},
            access_token=self.access_token,
        )
        logger.info(f"Ticket {ticket_id} deleted by {self.user_id}")
        return ticket
