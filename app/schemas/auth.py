from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
)


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters")
    return value


class SignInRequest(BaseModel):
    """Sign-in form"""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., description="Account password")

    @field_validator("email", mode="wrap")
    @classmethod
    def validate_email(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            raise ValueError("Invalid email address")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class SignUpRequest(SignInRequest):
    """Sign-up form"""

    name: str = Field(..., description="Display name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


class PasswordStrengthRequest(BaseModel):
    password: str = Field("", description="Password being typed")


class PasswordCriterionResult(BaseModel):
    label: str
    met: bool


class PasswordStrengthResponse(BaseModel):
    """Password strength indicator"""

    score: int = Field(..., ge=0, le=5, description="Number of criteria met")
    max_score: int = Field(5)
    percentage: float = Field(..., ge=0, le=100)
    label: str = Field(..., description="Very Weak, Weak, Fair, Good or Strong")
    color: str
    strong: bool = Field(..., description="Every criterion is met")
    criteria: List[PasswordCriterionResult]


class AuthUser(BaseModel):
    """Authenticated user as reported by the auth service"""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    email_confirmed: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_backend(cls, user: Dict[str, Any]) -> "AuthUser":
        metadata = user.get("user_metadata") or {}
        return cls(
            id=str(user["id"]),
            email=user.get("email"),
            name=metadata.get("name"),
            email_confirmed=bool(
                user.get("email_confirmed_at") or user.get("confirmed_at")
            ),
            created_at=user.get("created_at"),
        )


class UserSession(BaseModel):
    """Server-side session stored in Redis"""

    session_token: str
    access_token: str
    refresh_token: str
    expires_at: Optional[datetime] = None
    user: AuthUser

    @classmethod
    def from_backend(cls, session_token: str, session: Dict[str, Any]) -> "UserSession":
        expires_at = session.get("expires_at")
        if expires_at is None and session.get("expires_in"):
            expires_at = datetime.now(UTC).timestamp() + int(session["expires_in"])
        return cls(
            session_token=session_token,
            access_token=session["access_token"],
            refresh_token=session["refresh_token"],
            expires_at=(
                datetime.fromtimestamp(int(expires_at), UTC)
                if isinstance(expires_at, (int, float))
                else expires_at
            ),
            user=AuthUser.from_backend(session["user"]),
        )


class SessionResponse(BaseModel):
    """Session handed to the client; the token goes in the Authorization header"""

    session_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: AuthUser

    @classmethod
    def from_session(cls, session: UserSession) -> "SessionResponse":
        return cls(
            session_token=session.session_token,
            expires_at=session.expires_at,
            user=session.user,
        )


class SignUpResponse(BaseModel):
    user: AuthUser
    session: Optional[SessionResponse] = None
    email_confirmation_required: bool = Field(
        ..., description="True until the e-mail address has been confirmed"
    )


__all__ = [
    "SignInRequest",
    "SignUpRequest",
    "PasswordStrengthRequest",
    "PasswordCriterionResult",
    "PasswordStrengthResponse",
    "AuthUser",
    "UserSession",
    "SessionResponse",
    "SignUpResponse",
]
