import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from app.core.utils import DisplayUtils
from app.models.ticket import Ticket, TicketPriority, TicketStatus
from app.models.user_profile import UserProfile
from app.schemas.user import ProfileSummary

PRIORITY_BADGES = {
    TicketPriority.HIGH: "destructive",
    TicketPriority.MEDIUM: "default",
    TicketPriority.LOW: "secondary",
}


def _check_title(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Title must be at least 2 characters.")
    return v


def _empty_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


REQUIRED_ON_UPDATE = {"title": "Title", "priority": "Priority", "status": "Status"}


class TicketCreate(BaseModel):
    """Schema for creating a ticket"""

    project_id: uuid.UUID = Field(..., description="Project the ticket belongs to")
    title: str = Field(..., description="Ticket title")
    description: Optional[str] = Field(None, description="Ticket details")
    priority: TicketPriority = Field(TicketPriority.LOW, description="Priority")
    status: TicketStatus = Field(TicketStatus.TODO, description="Workflow status")
    assignee: Optional[uuid.UUID] = Field(
        None, description="Assigned user, empty for unassigned"
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("description", "assignee", mode="before")
    @classmethod
    def validate_optional(cls, v):
        return _empty_to_none(v)


class TicketUpdate(BaseModel):
    """Schema for updating a ticket; send assignee null to unassign"""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TicketPriority] = None
    status: Optional[TicketStatus] = None
    assignee: Optional[uuid.UUID] = None

    @field_validator("title", "priority", "status", mode="before")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        # Only called for fields present in the request; these columns are NOT NULL
        if v is None:
            raise ValueError(f"{REQUIRED_ON_UPDATE[info.field_name]} is required")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _check_title(v) if v is not None else v

    @field_validator("description", "assignee", mode="before")
    @classmethod
    def validate_optional(cls, v):
        return _empty_to_none(v)


class TicketResponse(BaseModel):
    """Ticket row with its assignee"""

    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: Optional[str] = None
    priority: TicketPriority
    status: TicketStatus
    assignee: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    assignee_profile: Optional[ProfileSummary] = None
    assignee_label: str
    priority_badge: str
    created_label: str

    @classmethod
    def build(
        cls, ticket: Ticket, assignee: Optional[UserProfile] = None
    ) -> "TicketResponse":
        if assignee is not None:
            label = assignee.name or assignee.email or "Unassigned"
        else:
            label = "Unassigned"
        return cls(
            **ticket.model_dump(
                include={
                    "id",
                    "project_id",
                    "title",
                    "description",
                    "priority",
                    "status",
                    "assignee",
                    "created_at",
                    "updated_at",
                }
            ),
            assignee_profile=ProfileSummary.from_profile(assignee) if assignee else None,
            assignee_label=label,
            priority_badge=PRIORITY_BADGES[ticket.priority],
            created_label=DisplayUtils.date_label(ticket.created_at),
        )


__all__ = ["TicketCreate", "TicketUpdate", "TicketResponse"]
