import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from app.db.backend_client import BackendClient

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"


def _is_session(payload: Dict[str, Any]) -> bool:
    return bool(payload.get("access_token"))


class BackendAuth:
    """
    Wrapper around the backend's authentication endpoints.
    Sessions are returned exactly as the backend issues them:
    ``access_token``, ``refresh_token``, ``expires_in``, ``expires_at`` and ``user``.
    """

    def __init__(self, backend: "BackendClient"):
        self._backend = backend

    async def sign_up(
        self,
        email: str,
        password: str,
        data: Optional[Dict[str, Any]] = None,
        redirect_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Register a new account.
        :param email: Account e-mail.
        :param password: Account password.
        :param data: User metadata stored with the account.
        :param redirect_to: Where the confirmation link sends the user.
        :return: ``{"user": ..., "session": ...}``, the session is None while
            the e-mail address still has to be confirmed.
        """
        params = {"redirect_to": redirect_to} if redirect_to else None
        resp = await self._backend.request(
            "POST",
            f"{AUTH_PATH}/signup",
            params=params,
            json={"email": email, "password": password, "data": data or {}},
        )
        payload = resp.json()
        if _is_session(payload):
            return {"user": payload.get("user"), "session": payload}
        return {"user": payload.get("user", payload), "session": None}

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """
        Exchange e-mail and password for a session.
        """
        resp = await self._backend.request(
            "POST",
            f"{AUTH_PATH}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return resp.json()

    async def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        """
        Exchange a refresh token for a new session.
        """
        resp = await self._backend.request(
            "POST",
            f"{AUTH_PATH}/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return resp.json()

    async def sign_out(self, access_token: str) -> None:
        """
        Revoke the session that owns the access token.
        """
        await self._backend.request(
            "POST", f"{AUTH_PATH}/logout", access_token=access_token
        )

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        """
        Fetch the user that owns the access token.
        """
        resp = await self._backend.request(
            "GET", f"{AUTH_PATH}/user", access_token=access_token
        )
        return resp.json()

    async def update_user(
        self, access_token: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Update the metadata of the user that owns the access token.
        """
        resp = await self._backend.request(
            "PUT",
            f"{AUTH_PATH}/user",
            access_token=access_token,
            json={"data": data},
        )
        return resp.json()
