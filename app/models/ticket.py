import uuid
from typing import Optional
from enum import Enum

from app.db.base import BackendRecord


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TicketStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in progress"
    DONE = "done"


class Ticket(BackendRecord):
    """
    An issue tracked inside a project.
    """

    title: str
    description: Optional[str] = None
    priority: TicketPriority = TicketPriority.LOW
    status: TicketStatus = TicketStatus.TODO
    assignee: Optional[uuid.UUID] = None
    project_id: uuid.UUID

    def __repr__(self) -> str:
        return f"<Ticket(title={self.title}, status={self.status})>"
