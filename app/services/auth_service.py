import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from app.core.config import settings
from app.core.exceptions import InternalServerErrorException
from app.core.security import PasswordManager, TokenManager, generate_session_token
from app.db.backend_client import BackendClient, BackendError
from app.db.redis_client import redis_client
from app.schemas.auth import (
    AuthUser,
    PasswordStrengthResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    SessionResponse,
    UserSession,
)

logger = logging.getLogger(__name__)

# Statuses with which the backend refuses a refresh token for good
SESSION_ENDED_STATUSES = {400, 401, 403}


class AuthEvent(str, Enum):
    """Authentication state changes"""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[
    [AuthEvent, Optional[UserSession]], Union[None, Awaitable[None]]
]


class AuthSubscription:
    """Handle returned by ``AuthStateNotifier.subscribe``"""

    def __init__(self, notifier: "AuthStateNotifier", listener: AuthListener):
        self._notifier = notifier
        self.listener = listener

    def unsubscribe(self) -> None:
        self._notifier.remove(self.listener)


class AuthStateNotifier:
    """
    In-process fan-out of authentication state changes.
    Listeners may be plain functions or coroutine functions.
    """

    def __init__(self):
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> AuthSubscription:
        """
        Register a listener for every auth event.
        :param listener: Called with the event and the affected session.
        :return: Subscription that can be cancelled with ``unsubscribe()``.
        """
        self._listeners.append(listener)
        return AuthSubscription(self, listener)

    def remove(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event: AuthEvent, session: Optional[UserSession]) -> None:
        """
        Notify every listener. A failing listener is logged and does not
        stop the others or the request that caused the event.
        """
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Auth listener {listener!r} failed on {event.value}: {e}")


auth_events = AuthStateNotifier()


class AuthService:
    """Sign-up, sign-in, sign-out and server-side sessions"""

    def __init__(self, backend: BackendClient, events: Optional[AuthStateNotifier] = None):
        self.backend = backend
        self.events = events or auth_events

    @staticmethod
    def evaluate_password(password: str) -> Optional[PasswordStrengthResponse]:
        """
        Password strength indicator for the given password.
        :param password: The password being typed.
        :return: Strength details, or None for an empty password.
        """
        strength = PasswordManager.evaluate_strength(password)
        if strength is None:
            return None
        return PasswordStrengthResponse.model_validate(strength)

    async def _store_session(self, session_token: str, payload: dict) -> UserSession:
        session = UserSession.from_backend(session_token, payload)
        stored = await redis_client.set_session(
            session_token, session.model_dump(mode="json")
        )
        if not stored:
            raise InternalServerErrorException("Session storage is unavailable")
        return session

    async def sign_up(self, data: SignUpRequest) -> SignUpResponse:
        """
        Register an account. The name is kept as user metadata and the
        confirmation e-mail sends the user back to the web app.
        :param data: Sign-up form.
        :return: The new user, with a session when no confirmation is required.
        """
        result = await self.backend.auth.sign_up(
            email=data.email,
            password=data.password,
            data={"name": data.name},
            redirect_to=f"{settings.SITE_URL}/",
        )
        user = AuthUser.from_backend(result["user"])
        logger.info(f"Account created for {user.email}")

        if result["session"] is None:
            return SignUpResponse(user=user, email_confirmation_required=True)

        session = await self._store_session(generate_session_token(), result["session"])
        await self.events.emit(AuthEvent.SIGNED_IN, session)
        return SignUpResponse(
            user=session.user,
            session=SessionResponse.from_session(session),
            email_confirmation_required=False,
        )

    async def sign_in(self, data: SignInRequest) -> UserSession:
        """
        Sign in with e-mail and password and open a server-side session.
        :param data: Sign-in form.
        :return: The new session.
        """
        payload = await self.backend.auth.sign_in_with_password(
            data.email, data.password
        )
        session = await self._store_session(generate_session_token(), payload)
        logger.info(f"User {session.user.email} signed in")
        await self.events.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self, session: UserSession) -> None:
        """
        Revoke the backend session and forget the local one. The local session
        is removed even when the backend call fails.
        :param session: Session to end.
        """
        try:
            await self.backend.auth.sign_out(session.access_token)
        except BackendError as e:
            if e.status_code not in SESSION_ENDED_STATUSES:
                raise
            logger.info(f"Backend session of {session.user.email} was already gone")
        finally:
            await redis_client.delete_session(session.session_token)
            await self.events.emit(AuthEvent.SIGNED_OUT, session)
        logger.info(f"User {session.user.email} signed out")

    async def get_session(self, session_token: str) -> Optional[UserSession]:
        """
        Load a session, refreshing its access token when it is about to expire.
        :param session_token: Opaque session token from the client.
        :return: The live session, or None when there is none.
        """
        data = await redis_client.get_session(session_token)
        if data is None:
            return None

        session = UserSession.model_validate(data)
        if not TokenManager.is_token_expiring(session.access_token):
            return session
        return await self.refresh_session(session)

    async def refresh_session(self, session: UserSession) -> Optional[UserSession]:
        """
        Exchange the refresh token for new tokens.
        :param session: Session with an expiring access token.
        :return: The refreshed session, or None if the backend ended it.
        """
        try:
            payload = await self.backend.auth.refresh_session(session.refresh_token)
        except BackendError as e:
            if e.status_code not in SESSION_ENDED_STATUSES:
                raise
            logger.info(f"Session of {session.user.email} ended: {e.message}")
            await redis_client.delete_session(session.session_token)
            await self.events.emit(AuthEvent.SIGNED_OUT, session)
            return None

        refreshed = await self._store_session(session.session_token, payload)
        logger.debug(f"Access token refreshed for {refreshed.user.email}")
        await self.events.emit(AuthEvent.TOKEN_REFRESHED, refreshed)
        return refreshed

    async def get_current_user(self, session: UserSession) -> AuthUser:
        """
        Fetch the signed-in user from the auth service.
        """
        return AuthUser.from_backend(
            await self.backend.auth.get_user(session.access_token)
        )

    async def update_session_user(self, session: UserSession) -> UserSession:
        """
        Reload the user of a session after their account changed.
        """
        user = await self.get_current_user(session)
        updated = session.model_copy(update={"user": user})
        await redis_client.set_session(
            session.session_token, updated.model_dump(mode="json")
        )
        await self.events.emit(AuthEvent.USER_UPDATED, updated)
        return updated


def log_auth_event(event: AuthEvent, session: Optional[UserSession]) -> None:
    """Default listener: writes auth state changes to the log"""
    email = session.user.email if session else None
    logger.info(f"Auth state changed: {event.value} ({email or 'anonymous'})")


__all__ = [
    "AuthEvent",
    "AuthListener",
    "AuthSubscription",
    "AuthStateNotifier",
    "auth_events",
    "AuthService",
    "log_auth_event",
]
