import uuid
from typing import Optional

from app.db.base import BackendRecord


class UserPermission(BackendRecord):
    """
    An explicit permission granted to a user inside an organization.
    """

    user_id: uuid.UUID
    organization_id: uuid.UUID
    permission: str
    granted_by: Optional[uuid.UUID] = None
