from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.db.backend_client import BackendClient, get_backend
from app.db.redis_client import redis_client
from tests.fake_backend import ANON_KEY, FakeBackend

DEFAULT_PASSWORD = "Passw0rd!"

SignIn = Callable[..., Awaitable[Dict[str, str]]]


class FakeRedis:
    """Dictionary-backed replacement for the async Redis connection."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.expiry: Dict[str, object] = {}

    async def ping(self) -> bool:
        return True

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    async def aclose(self):
        pass


@pytest.fixture
def fake_backend() -> FakeBackend:
    """In-memory backend with no accounts and empty tables."""
    return FakeBackend()


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Swap the Redis connection for an in-memory store."""
    previous = redis_client._redis
    fake = FakeRedis()
    redis_client._redis = fake
    yield fake
    redis_client._redis = previous


@pytest_asyncio.fixture
async def backend(fake_backend: FakeBackend) -> AsyncGenerator[BackendClient, None]:
    """Backend client talking to the fake backend."""
    client = BackendClient(
        base_url="http://backend.test",
        api_key=ANON_KEY,
        transport=fake_backend.transport,
    )
    yield client
    await client.disconnect()


@pytest_asyncio.fixture
async def client(
    backend: BackendClient, fake_redis: FakeRedis
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the backend dependency overridden."""

    async def override_get_backend():
        return backend

    app.dependency_overrides[get_backend] = override_get_backend

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    # Cleanup
    app.dependency_overrides.clear()


@pytest.fixture
def sign_in(client: AsyncClient, fake_backend: FakeBackend) -> SignIn:
    """Returns a coroutine that registers (if needed) and signs in an account,
    giving back the Authorization header of the new session."""

    async def _sign_in(
        email: str, name: Optional[str] = None, password: str = DEFAULT_PASSWORD
    ) -> Dict[str, str]:
        if email not in fake_backend.passwords:
            fake_backend.create_user(email, password, name or email.split("@")[0].title())
        response = await client.post(
            "/v1/auth/sign-in", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['data']['session_token']}"}

    return _sign_in


@pytest_asyncio.fixture
async def alice(sign_in: SignIn) -> Dict[str, str]:
    return await sign_in("alice@example.com", "Alice")


@pytest_asyncio.fixture
async def bob(sign_in: SignIn) -> Dict[str, str]:
    return await sign_in("bob@example.com", "Bob")
