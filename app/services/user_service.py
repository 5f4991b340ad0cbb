import logging
import uuid
from typing import Dict, Iterable, Optional

from app.core.exceptions import NotFoundException
from app.models.user_profile import UserProfile
from app.schemas.user import UserProfileUpdate
from app.services.common import CommonService

logger = logging.getLogger(__name__)


class UserService(CommonService):
    """Profiles of the caller and of the people they work with"""

    async def get_profile(self) -> UserProfile:
        """
        Get the caller's profile.
        :return: UserProfile of the signed-in user.
        """
        row = await self.backend.select_one(
            UserProfile.table_name(),
            filters={"id": str(self.user_id)},
            access_token=self.access_token,
        )
        if row is None:
            raise NotFoundException("Profile", str(self.user_id))
        return UserProfile.from_row(row)

    async def update_profile(self, data: UserProfileUpdate) -> UserProfile:
        """
        Update the caller's profile. The display name is mirrored into the
        auth user's metadata so both stay in sync.
        :param data: Fields to change.
        :return: The updated profile.
        """
        changes = self.serialize_pydantic_to_dict(data, exclude_unset=True) or {}
        if not changes:
            return await self.get_profile()

        rows = await self.backend.update(
            UserProfile.table_name(),
            changes,
            filters={"id": str(self.user_id)},
            access_token=self.access_token,
        )
        if not rows:
            raise NotFoundException("Profile", str(self.user_id))

        if "name" in changes:
            await self.backend.auth.update_user(
                self.access_token, {"name": changes["name"]}
            )

        logger.info(f"Profile {self.user_id} updated: {', '.join(changes)}")
        return UserProfile.from_row(rows[0])

    async def get_profile_by_email(self, email: str) -> Optional[UserProfile]:
        """
        Look up an account by e-mail, used when inviting members.
        :param email: E-mail address.
        :return: The profile, or None if nobody uses that address.
        """
        row = await self.backend.select_one(
            UserProfile.table_name(),
            filters={"email": email.strip().lower()},
            access_token=self.access_token,
        )
        return UserProfile.from_row(row) if row else None

    async def get_profiles(
        self, user_ids: Iterable[Optional[uuid.UUID]]
    ) -> Dict[uuid.UUID, UserProfile]:
        """
        Load several profiles in one round trip.
        :param user_ids: IDs to load, None entries are ignored.
        :return: Profiles keyed by user ID.
        """
        ids = sorted({str(i) for i in user_ids if i is not None})
        if not ids:
            return {}
        rows = await self.backend.select(
            UserProfile.table_name(),
            filters={"id": ids},
            access_token=self.access_token,
        )
        profiles = [UserProfile.from_row(row) for row in rows]
        return {profile.id: profile for profile in profiles}
