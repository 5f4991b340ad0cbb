import re
import uuid
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict


class BackendRecord(BaseModel):
    """
    Base class for rows read from backend tables.
    Provides the common ID and timestamp fields and the table name.
    """

    model_config = ConfigDict(extra="ignore", from_attributes=True)

    # Explicit table name, derived from the class name when unset
    table: ClassVar[Optional[str]] = None

    id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def table_name(cls) -> str:
        """
        Name of the backend table. Converts CamelCase to a plural snake_case name.
        """
        if cls.table:
            return cls.table
        snake_case = re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()
        if snake_case.endswith("y") and snake_case[-2] not in "aeiou":
            return snake_case[:-1] + "ies"
        elif snake_case.endswith(("s", "x", "z", "ch", "sh")):
            return snake_case + "es"
        else:
            return snake_case + "s"

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        return cls.model_validate(row)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
