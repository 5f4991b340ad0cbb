import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_session, get_optional_session
from app.core.exceptions import toast_on_error
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import (
    AuthUser,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UserSession,
)
from app.schemas.responses import DataResponse, MessageResponse, success_toast
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/sign-up",
    response_model=DataResponse[SignUpResponse],
    status_code=status.HTTP_201_CREATED,
)
@toast_on_error("Sign up failed")
async def sign_up(
    data: SignUpRequest,
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[SignUpResponse]:
    """
    Create an account. Unless the backend signs the user in right away,
    a confirmation e-mail is sent first.
    """
    result = await AuthService(backend).sign_up(data)
    return DataResponse(
        message="Account created successfully",
        data=result,
        toast=success_toast(
            "Account created!", "Please check your email to verify your account."
        ),
    )


@router.post("/sign-in", response_model=DataResponse[SessionResponse])
@toast_on_error("Sign in failed")
async def sign_in(
    data: SignInRequest,
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[SessionResponse]:
    """
    Sign in with e-mail and password. Send the returned session token as a
    bearer token on every following request.
    """
    session = await AuthService(backend).sign_in(data)
    return DataResponse(
        message="Signed in successfully",
        data=SessionResponse.from_session(session),
        toast=success_toast("Welcome back!", "You have been signed in successfully."),
    )


@router.post("/sign-out", response_model=MessageResponse)
@toast_on_error("Sign out failed")
async def sign_out(
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> MessageResponse:
    """
    End the current session.
    """
    await AuthService(backend).sign_out(session)
    return MessageResponse(message="Signed out successfully")


@router.get("/session", response_model=DataResponse[Optional[SessionResponse]])
@toast_on_error("Error loading session")
async def get_session(
    session: Annotated[Optional[UserSession], Depends(get_optional_session)],
) -> DataResponse[Optional[SessionResponse]]:
    """
    The current session, or null when signed out.
    """
    return DataResponse(
        message="Session retrieved successfully" if session else "No active session",
        data=SessionResponse.from_session(session) if session else None,
    )


@router.get("/user", response_model=DataResponse[AuthUser])
@toast_on_error("Error loading user")
async def get_user(
    session: Annotated[UserSession, Depends(get_current_session)],
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> DataResponse[AuthUser]:
    """
    The signed-in user as known to the auth service.
    """
    user = await AuthService(backend).get_current_user(session)
    return DataResponse(message="User retrieved successfully", data=user)


@router.post(
    "/password-strength",
    response_model=DataResponse[Optional[PasswordStrengthResponse]],
)
async def password_strength(
    data: PasswordStrengthRequest,
) -> DataResponse[Optional[PasswordStrengthResponse]]:
    """
    Strength indicator for a password being typed; null for an empty password.
    """
    return DataResponse(
        message="Password strength evaluated",
        data=AuthService.evaluate_password(data.password),
    )
