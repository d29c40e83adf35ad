import os

# Testing mode has to be in place before the settings and the engine are built
os.environ["ENVIRONMENT"] = "testing"
os.environ["TESTING"] = "true"
os.environ["TEST_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
from typing import AsyncGenerator, Callable
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from minisocial.config import settings
from minisocial.main import app
from minisocial.db.session import build_engine, build_session_factory, get_db
from minisocial.models import Base
from minisocial.services.memory_store import InMemoryPostStore, InMemoryUserStore
from minisocial.services.post_service import PostService
from minisocial.services.post_store import PostStore

BACKENDS = ["database", "memory"]

@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = build_engine(settings.TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)

@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Keep uploads of every test in its own temporary directory"""
    directory = tmp_path / "uploads"
    directory.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(directory))
    return directory

async def build_stores(backend: str, factory) -> AsyncGenerator[Callable[[], PostStore], None]:
    """
    Builds store handles that all see the same data.

    For the database backend every handle gets its own session, like two
    concurrent requests would.
    """
    if backend == "memory":
        store = InMemoryPostStore()
        yield lambda: store
        return

    sessions = []

    def make_store() -> PostStore:
        session = factory()
        sessions.append(session)
        return PostService(session)

    yield make_store

    for session in sessions:
        await session.close()

@pytest.fixture(params=BACKENDS)
async def store_factory(request, session_factory) -> AsyncGenerator[Callable[[], PostStore], None]:
    async for make_store in build_stores(request.param, session_factory):
        yield make_store

@pytest.fixture
def post_store(store_factory) -> PostStore:
    return store_factory()

@pytest.fixture
async def file_engine(tmp_path):
    """On-disk database where every session gets its own connection"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'social.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

@pytest.fixture(params=BACKENDS)
async def concurrent_store_factory(request, file_engine) -> AsyncGenerator[Callable[[], PostStore], None]:
    """Store handles for racing operations, backed by separate connections"""
    async for make_store in build_stores(request.param, build_session_factory(file_engine)):
        yield make_store

@pytest.fixture(params=BACKENDS)
async def test_client(request, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, once per store backend"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.store_backend = request.param
    app.state.memory_posts = InMemoryPostStore()
    app.state.memory_users = InMemoryUserStore()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.store_backend = "database"

@pytest.fixture
def register_user(test_client: AsyncClient) -> Callable:
    """Registers a user and returns its profile with an Authorization header"""
    async def _register(username: str, password: str = "Password123") -> dict:
        response = await test_client.post("/api/auth/register", json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        })
        assert response.status_code == 201, response.text
        data = response.json()
        return {
            **data["user"],
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _register
