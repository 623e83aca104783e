import os

# Settings are read at import time, so the environment has to be in place first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./unused-test.db"
os.environ["SITE_TOKEN_SECRET_KEY"] = "iNbKium-f8sdpM3yp_g_ZoXz3nin2psxJ7_oPvJN7kU="
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["SALT_ROUNDS"] = "4"
os.environ["ADMIN_USERNAMES"] = '["admin"]'
os.environ["PRIZE_POLICY"] = "per_site"
os.environ.pop("SITE_PROXIMITY_RADIUS_M", None)
os.environ.pop("COMPLETION_THRESHOLD", None)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from database import Base, get_db
import models  # noqa: F401  registers the tables on Base.metadata

from tests.fakes import FakeClock, MemoryGameRepository


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo():
    return MemoryGameRepository()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'qrhunt.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register_and_login(client, username, password="secret123"):
    response = await client.post("/auth/register", json={
        "username": username,
        "password": password,
        "display_name": username.title(),
    })
    assert response.status_code == 201, response.text
    response = await client.post("/auth/login", data={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def admin_headers(client):
    return await register_and_login(client, "admin")


@pytest_asyncio.fixture
async def player_headers(client):
    return await register_and_login(client, "alice")
