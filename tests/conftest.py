import asyncio
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory document store and per-process rate limits
os.environ.setdefault("MONGODB_DB_NAME", "nurushop_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")


@pytest_asyncio.fixture(autouse=True)
async def db():
    from mongomock_motor import AsyncMongoMockClient

    from nurushop.db.init import init_db
    from nurushop.services.rate_limit import get_rate_limiter

    get_rate_limiter.cache_clear()
    client = AsyncMongoMockClient()
    database = client["nurushop_test"]
    await init_db(database)
    yield database
    get_rate_limiter.cache_clear()


@pytest.fixture
def interleaved(monkeypatch):
    """Make collection reads and writes yield to the event loop first.

    mongomock-motor completes each call without suspending, so gathered
    coroutines would otherwise run one after another.
    """
    from mongomock_motor import AsyncMongoMockCollection

    for name in ("find_one", "find_one_and_update", "update_one", "insert_one"):
        original = getattr(AsyncMongoMockCollection, name)

        async def yielding(self, *args, _original=original, **kwargs):
            await asyncio.sleep(0)
            return await _original(self, *args, **kwargs)

        monkeypatch.setattr(AsyncMongoMockCollection, name, yielding)


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from nurushop.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _make_admin(email: str, role):
    from nurushop.services import admins as admin_service
    admin = await admin_service.create_admin(email, "correct-horse", name=email.split("@")[0], role=role)
    return admin_service._identity(admin)


@pytest_asyncio.fixture
async def senior_admin():
    from nurushop.models.admin_user import AdminRole
    return await _make_admin("senior@nurushop.test", AdminRole.SENIOR)


@pytest_asyncio.fixture
async def second_senior_admin():
    from nurushop.models.admin_user import AdminRole
    return await _make_admin("senior2@nurushop.test", AdminRole.SENIOR)


@pytest_asyncio.fixture
async def sub_admin():
    from nurushop.models.admin_user import AdminRole
    return await _make_admin("sub@nurushop.test", AdminRole.SUB)


@pytest.fixture
def auth_headers():
    from nurushop.core.security import create_admin_token

    def _headers(identity) -> dict[str, str]:
        token = create_admin_token({"admin_id": identity.admin_id, "role": identity.role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def user_with_balance():
    from nurushop.models.user import User
    from nurushop.services import wallet as wallet_service

    async def _make(balance: float, user_id: str = "user-1") -> User:
        await User(id=user_id, email=f"{user_id}@example.com", name=user_id).insert()
        if balance:
            await wallet_service.credit(user_id, balance, "adjustment", metadata={"reason": "seed"})
        return await User.get(user_id)

    return _make
