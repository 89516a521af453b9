import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pilance.common.enums import UserRole
from pilance.common.security import create_access_token
from pilance.db.base import Base
from pilance.db.models import *  # noqa: F401,F403 - ensure all models loaded

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


def _enable_savepoints(engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from pilance.api.deps import get_db
    from pilance.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db_session, role: UserRole, name: str):
    from pilance.db.models.user import User

    suffix = uuid.uuid4().hex[:8]
    user = User(
        id=uuid.uuid4(),
        email=f"{name}_{suffix}@test.com",
        username=f"{name}_{suffix}",
        full_name=f"Test {name.title()}",
        role=role.value,
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def client_user(db_session):
    return await _make_user(db_session, UserRole.CLIENT, "client")


@pytest.fixture
async def freelancer_user(db_session):
    return await _make_user(db_session, UserRole.FREELANCER, "freelancer")


@pytest.fixture
async def rival_user(db_session):
    return await _make_user(db_session, UserRole.FREELANCER, "rival")


@pytest.fixture
async def outsider_user(db_session):
    return await _make_user(db_session, UserRole.CLIENT, "outsider")


def _headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture
def freelancer_headers(freelancer_user):
    return _headers(freelancer_user)


@pytest.fixture
def rival_headers(rival_user):
    return _headers(rival_user)


@pytest.fixture
def outsider_headers(outsider_user):
    return _headers(outsider_user)


@pytest.fixture
async def open_job(client, client_headers):
    resp = await client.post(
        "/api/v1/jobs",
        headers=client_headers,
        json={
            "title": "Pi checkout for a bakery site",
            "description": "Wire the Pi SDK into an existing storefront.",
            "budget": 4000,
        },
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
async def pending_proposal(client, open_job, freelancer_headers):
    resp = await client.post(
        "/api/v1/proposals",
        headers=freelancer_headers,
        json={
            "job_id": open_job["id"],
            "cover_letter": "Shipped several Pi integrations.",
            "proposed_rate": 4200,
            "duration": "4 weeks",
        },
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
async def active_contract(client, pending_proposal, client_headers):
    resp = await client.post(
        f"/api/v1/proposals/{pending_proposal['id']}/accept", headers=client_headers
    )
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture(autouse=True)
def mock_integrations():
    """Mock the Pi rail calls made from endpoint handlers."""
    with patch(
        "pilance.integrations.pi_network.PiNetworkClient.approve_payment",
        new_callable=AsyncMock,
        return_value={"identifier": "mock", "status": {"developer_approved": True}},
    ) as approve:
        yield approve
