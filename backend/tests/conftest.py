"""Shared test fixtures.

The database is a per-test SQLite file (aiosqlite); Redis and the WebSocket
manager are in-memory mocks. Tests never require running services.
"""

import os

# Settings are read at import time; provide the required URLs before app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./insightflow_test.db")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///./insightflow_test.db")
os.environ.setdefault("APP_ENV", "development")

import pytest  # noqa: E402
from uuid import UUID  # noqa: E402

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

from app.core.auth import get_current_tenant_id, get_current_user_id  # noqa: E402
from app.core.database import Base  # noqa: E402
from app.engine.context import ExecutionContext  # noqa: E402
from app.engine.data_table import Cell, DataTable, DataTableContainer, DataTableSpec  # noqa: E402
from app.api.deps import get_db, get_redis, get_websocket_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402


class FakeRedis:
    """The slice of redis.asyncio.Redis the application uses, kept in a dict."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []

    async def get(self, key: str):
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None):
        self._store[key] = value
        return True

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 0

    async def ping(self) -> bool:
        return True

    async def transaction(self, func, *watches, **kwargs):
        pipe = FakePipeline(self)
        await func(pipe)
        return await pipe.execute()


class FakePipeline:
    """Enough of a WATCH/MULTI pipeline for redis.asyncio.Redis.transaction callbacks."""

    def __init__(self, redis: FakeRedis):
        self._redis = redis
        self._queued: list[tuple[str, str, int | None]] = []

    async def get(self, key: str):
        return await self._redis.get(key)

    def multi(self) -> None:
        pass

    def set(self, key: str, value: str, ex: int | None = None):
        self._queued.append((key, value, ex))
        return self

    async def execute(self) -> list:
        results = [await self._redis.set(key, value, ex=ex) for key, value, ex in self._queued]
        self._queued.clear()
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def mock_ws():
    ws = MagicMock()
    ws.publish_execution_status = AsyncMock()
    ws.publish_dashboard_update = AsyncMock()
    return ws


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncSession:
    """Provide a test database session for direct use in tests."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def client(db_engine, fake_redis, mock_ws) -> AsyncClient:
    """Provide an httpx AsyncClient wired to the FastAPI test app.

    The route handlers get their own sessions from the same engine,
    so they can see committed data from db_session without sharing a connection.
    """
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_websocket_manager] = lambda: mock_ws

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    # Pop only our own overrides; mock_auth manages its own
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_redis, None)
    app.dependency_overrides.pop(get_websocket_manager, None)


@pytest.fixture
def tenant_id():
    return UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")


@pytest.fixture
def user_id():
    return UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")


@pytest.fixture
async def seed_user_a(db_session: AsyncSession, tenant_id, user_id):
    """Create a test user for tenant A so FK constraints are satisfied."""
    user = User(
        id=user_id,
        tenant_id=tenant_id,
        email="user_a@test.com",
        hashed_password="not-a-real-hash",
        full_name="Test User A",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def seed_user_b(db_session: AsyncSession, tenant_id_b, user_id_b):
    """Create a test user for tenant B so FK constraints are satisfied."""
    user = User(
        id=user_id_b,
        tenant_id=tenant_id_b,
        email="user_b@test.com",
        hashed_password="not-a-real-hash",
        full_name="Test User B",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def mock_auth(tenant_id, user_id):
    """Override auth dependencies for tests."""
    app.dependency_overrides[get_current_tenant_id] = lambda: tenant_id
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    yield
    app.dependency_overrides.pop(get_current_tenant_id, None)
    app.dependency_overrides.pop(get_current_user_id, None)


@pytest.fixture
def tenant_id_b():
    """Second tenant for isolation tests."""
    return UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")


@pytest.fixture
def user_id_b():
    """Second user for isolation tests."""
    return UUID("dddddddd-dddd-dddd-dddd-dddddddddddd")


@pytest.fixture
def user_id_a2():
    """Another user in tenant A, for ownership tests."""
    return UUID("eeeeeeee-eeee-eeee-eeee-eeeeeeeeeeee")


@pytest.fixture
def mock_auth_b(tenant_id_b, user_id_b):
    """Override auth dependencies for tenant B tests."""
    app.dependency_overrides[get_current_tenant_id] = lambda: tenant_id_b
    app.dependency_overrides[get_current_user_id] = lambda: user_id_b
    yield
    app.dependency_overrides.pop(get_current_tenant_id, None)
    app.dependency_overrides.pop(get_current_user_id, None)


@pytest.fixture
def switch_user():
    """Change the authenticated identity mid-test: switch_user(tenant_id, user_id)."""

    def _switch(tenant: UUID, user: UUID) -> None:
        app.dependency_overrides[get_current_tenant_id] = lambda: tenant
        app.dependency_overrides[get_current_user_id] = lambda: user

    yield _switch
    app.dependency_overrides.pop(get_current_tenant_id, None)
    app.dependency_overrides.pop(get_current_user_id, None)


def build_table(columns: list[tuple[str, str]], rows: list[list]) -> DataTable:
    container = DataTableContainer(DataTableSpec.of(*columns))
    for i, values in enumerate(rows):
        container.add_row(
            f"row-{i}", [Cell(col_type, value) for (_, col_type), value in zip(columns, values)]
        )
    return container.close()


@pytest.fixture
def make_table():
    """Build a DataTable: make_table([("name", "string")], [["a"], ["b"]])."""
    return build_table


@pytest.fixture
def ctx() -> ExecutionContext:
    return ExecutionContext("node-under-test")
