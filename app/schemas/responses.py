from datetime import datetime, UTC
from enum import Enum
from typing import Any, List, Optional, TypeVar, Generic

from pydantic import BaseModel, Field

T = TypeVar("T")


class ToastVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Toast(BaseModel):
    """Notification shown to the user after an action"""

    title: str = Field(..., description="Toast title")
    description: Optional[str] = Field(None, description="Toast body")
    variant: ToastVariant = Field(ToastVariant.DEFAULT, description="Visual variant")


class EmptyState(BaseModel):
    """Text shown when a list has nothing to display"""

    title: str
    description: str


class MessageResponse(BaseModel):
    """Simple message response without data"""

    success: bool = Field(True)
    message: str = Field(...)
    data: None = Field(None)
    toast: Optional[Toast] = Field(None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, data=None, **kwargs)


class DataResponse(BaseModel, Generic[T]):
    """Response with data payload"""

    success: bool = Field(True)
    message: str = Field(...)
    data: T = Field(...)
    toast: Optional[Toast] = Field(None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __init__(
        self, data: T, message: str = "Operation completed successfully", **kwargs
    ):
        super().__init__(message=message, data=data, **kwargs)


class ListResponse(BaseModel):
    """List response; lists are loaded whole and filtered by the client"""

    success: bool = Field(True)
    message: str = Field("Data retrieved successfully")
    data: List[Any] = Field(...)
    total: int = Field(..., ge=0, description="Items before filtering")
    filtered: int = Field(..., ge=0, description="Items after filtering")
    empty_state: Optional[EmptyState] = Field(None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def success_toast(title: str, description: Optional[str] = None) -> Toast:
    return Toast(title=title, description=description)


def list_response(
    items: List[Any],
    total: int,
    message: str = "Data retrieved successfully",
    empty_state: Optional[EmptyState] = None,
) -> ListResponse:
    """
    Build a list response, attaching the empty state only when nothing is shown.
    :param items: Items after filtering.
    :param total: Number of items before filtering.
    :param message: Response message.
    :param empty_state: Text for an empty list.
    :return: ListResponse
    """
    return ListResponse(
        data=items,
        total=total,
        filtered=len(items),
        message=message,
        empty_state=empty_state if not items else None,
    )


__all__ = [
    "ToastVariant",
    "Toast",
    "EmptyState",
    "MessageResponse",
    "DataResponse",
    "ListResponse",
    "success_toast",
    "list_response",
]
