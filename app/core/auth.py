import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.exceptions import AuthenticationException
from app.db.backend_client import BackendClient, get_backend
from app.schemas.auth import AuthUser, UserSession
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    backend: BackendClient = Depends(get_backend),
) -> Optional[UserSession]:
    """
    Dependency returning the caller's session, or None when signed out.
    :param credentials: Bearer credentials carrying the session token.
    :param backend: Backend client used to refresh expiring tokens.
    :return: UserSession or None.
    """
    if credentials is None:
        return None
    return await AuthService(backend).get_session(credentials.credentials)


async def get_current_session(
    session: Optional[UserSession] = Depends(get_optional_session),
) -> UserSession:
    """
    Dependency requiring a signed-in caller.
    :param session: Session resolved from the request.
    :return: UserSession of the signed-in user.
    """
    if session is None:
        raise AuthenticationException("Not signed in or session expired")
    return session


async def get_current_user(
    session: UserSession = Depends(get_current_session),
) -> AuthUser:
    """
    Dependency to get the current authenticated user.
    """
    return session.user
