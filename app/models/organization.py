from typing import Optional

from app.db.base import BackendRecord


class Organization(BackendRecord):
    """
    A tenant grouping users and projects.
    """

    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None

    def __repr__(self) -> str:
        return f"<Organization(name={self.name})>"
