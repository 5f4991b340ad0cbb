import json
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.asyncio import Redis

from app.core.config import settings

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session"  # session:<opaque token> -> JSON session

T = TypeVar("T")


def session_key(session_token: str) -> str:
    return f"{SESSION_KEY_PREFIX}:{session_token}"


class RedisClient:
    """
    Server-side session store.
    Every signed-in browser owns one JSON document holding the backend tokens
    and the user; it expires after ``SESSION_EXPIRE_DAYS``.
    Storage failures are logged and reported as "nothing stored/found".
    """

    def __init__(self):
        self._redis: Optional[Redis] = None

    async def connect(self) -> None:
        """
        Open the connection pool. Outside production a missing Redis only
        disables sign-in instead of stopping the app.
        """
        try:
            self._redis = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            await self._redis.ping()
            logger.info("Connected to Redis session store")
        except redis.ConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            if settings.ENVIRONMENT == "production":
                raise
            logger.warning("Sign-in will be unavailable until Redis is reachable.")
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
            logger.info("Disconnected from Redis session store")
        except redis.ConnectionError as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self._redis = None

    async def _run(
        self, action: str, call: Callable[[Redis], Awaitable[T]], fallback: T
    ) -> T:
        if self._redis is None:
            logger.error(f"Redis is not connected, cannot {action}")
            return fallback
        try:
            return await call(self._redis)
        except redis.RedisError as e:
            logger.error(f"Redis failed to {action}: {e}")
            return fallback

    async def ping(self) -> bool:
        """
        Health probe.
        :return: True if Redis answered.
        """
        if self._redis is None:
            return False
        return await self._run("ping", lambda r: r.ping(), False)

    async def set_session(self, session_token: str, data: dict) -> bool:
        """
        Store a signed-in session for the configured session lifetime.
        :param session_token: Opaque token handed to the client.
        :param data: Backend session (tokens, expiry and user).
        :return: True if the session was stored.
        """
        payload = json.dumps(data, default=str)
        ttl = timedelta(days=settings.SESSION_EXPIRE_DAYS)

        async def store(r: Redis) -> bool:
            return bool(await r.set(session_key(session_token), payload, ex=ttl))

        return await self._run("store session", store, False)

    async def get_session(self, session_token: str) -> Optional[dict]:
        """
        Load a session by its token; unreadable documents count as missing.
        """
        raw: Optional[Any] = await self._run(
            "load session", lambda r: r.get(session_key(session_token)), None
        )
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding malformed session document")
            return None
        return data if isinstance(data, dict) else None

    async def delete_session(self, session_token: str) -> bool:
        async def remove(r: Redis) -> bool:
            return bool(await r.delete(session_key(session_token)))

        return await self._run("delete session", remove, False)


redis_client = RedisClient()
