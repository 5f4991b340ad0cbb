import uuid
from collections import Counter
from typing import Iterable, Optional

from pydantic import BaseModel

from app.db.backend_client import BackendClient
from app.schemas.auth import UserSession


class CommonService:
    """
    Base class for services acting on behalf of a signed-in user.
    Every backend call carries the user's access token so the backend's
    row-level policies apply.
    """

    def __init__(self, backend: BackendClient, session: UserSession):
        self.backend = backend
        self.session = session

    @property
    def user_id(self) -> uuid.UUID:
        return uuid.UUID(self.session.user.id)

    @property
    def access_token(self) -> str:
        return self.session.access_token

    @staticmethod
    def serialize_pydantic_to_dict(
        obj: Optional[BaseModel], exclude_unset: bool = False
    ) -> Optional[dict]:
        """
        Convert a Pydantic model to a JSON-ready dict for the backend
        """
        if obj is None:
            return None
        return obj.model_dump(mode="json", exclude_unset=exclude_unset)

    async def count_rows_by(
        self, table: str, column: str, ids: Iterable[uuid.UUID]
    ) -> Counter:
        """
        Count rows per value of a column in one round trip.
        :param table: Table to count in.
        :param column: Column holding the grouped IDs.
        :param ids: IDs to count rows for.
        :return: Counter keyed by ID; IDs without rows count zero.
        """
        ids = list(ids)
        if not ids:
            return Counter()
        rows = await self.backend.select(
            table,
            columns=column,
            filters={column: [str(i) for i in ids]},
            access_token=self.access_token,
        )
        return Counter(uuid.UUID(str(row[column])) for row in rows)
