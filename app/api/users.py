import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.auth import get_current_session
from app.core.exceptions import toast_on_error
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import UserSession
from app.schemas.responses import DataResponse, success_toast
from app.schemas.user import UserProfileResponse, UserProfileUpdate
from app.services.auth_service import AuthService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=DataResponse[UserProfileResponse])
@toast_on_error("Error loading profile")
async def get_my_profile(
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[UserProfileResponse]:
    """
    Get the profile of the currently signed-in user.
    """
    profile = await UserService(backend, session).get_profile()
    return DataResponse(
        message="User profile retrieved successfully",
        data=UserProfileResponse.from_profile(profile),
    )


@router.put("/me", response_model=DataResponse[UserProfileResponse])
@toast_on_error("Error updating profile")
async def update_my_profile(
    update_data: UserProfileUpdate,
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[UserProfileResponse]:
    """
    Update the profile of the currently signed-in user.
    """
    profile = await UserService(backend, session).update_profile(update_data)
    if "name" in update_data.model_fields_set:
        await AuthService(backend).update_session_user(session)
    return DataResponse(
        message="User profile updated successfully",
        data=UserProfileResponse.from_profile(profile),
        toast=success_toast("Profile updated", "Your profile has been updated."),
    )
