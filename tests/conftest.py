"""Test config and shared fixtures."""
from dataclasses import dataclass
from typing import AsyncGenerator, Dict

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import apps.models  # noqa: F401  registers every table
from apps.identity.models import Tenant, User, UserTenant
from apps.subscriptions.models import (
    ModulePermission,
    SubscriptionPlan,
    SubscriptionStatus,
    SystemModule,
    TenantSubscription,
)
from framework.cache import QueryCache
from framework.repository import UnitOfWork
from framework.security import CurrentUser, create_access_token


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Create async test database session on a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_maker = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def cache(redis_client) -> QueryCache:
    return QueryCache(redis_client, prefix="qc", ttl=300)


@pytest.fixture
def uow(async_session: AsyncSession) -> UnitOfWork:
    return UnitOfWork(session=async_session)


@dataclass
class Seed:
    acme: Tenant
    globex: Tenant
    member: User
    admin: User
    starter: SubscriptionPlan
    subscription: TenantSubscription
    modules: Dict[str, SystemModule]


@pytest.fixture
async def seed(async_session: AsyncSession) -> Seed:
    """Two tenants; Acme is subscribed to Starter, which enables crm and disables reports."""
    acme = Tenant(name="Acme")
    globex = Tenant(name="Globex")
    async_session.add_all([acme, globex])
    await async_session.flush()

    member = User(username="alice", email="alice@acme.test", tenant_id=acme.id, role="member")
    admin = User(username="root", tenant_id=None, role="superadmin")
    async_session.add_all([member, admin])

    modules = {
        "billing": SystemModule(name="billing", category="finance", default_limits={"invoices": 20}),
        "crm": SystemModule(name="crm", category="sales", default_limits={"max_contacts": 100, "seats": 3}),
        "reports": SystemModule(name="reports", category="analytics", default_limits={}),
        "smart_talent_matching": SystemModule(name="smart_talent_matching", category="ai", default_limits={}),
    }
    async_session.add_all(list(modules.values()))

    starter = SubscriptionPlan(name="Starter", plan_type="standard")
    async_session.add(starter)
    await async_session.flush()

    async_session.add_all([
        ModulePermission(plan_id=starter.id, module_name="crm", is_enabled=True, limits={"max_contacts": 500}),
        ModulePermission(plan_id=starter.id, module_name="reports", is_enabled=False, limits={"exports": 2}),
    ])
    subscription = TenantSubscription(tenant_id=acme.id, plan_id=starter.id, status=SubscriptionStatus.ACTIVE)
    async_session.add(subscription)
    async_session.add(UserTenant(user_id=member.id, tenant_id=globex.id))
    await async_session.commit()

    return Seed(
        acme=acme,
        globex=globex,
        member=member,
        admin=admin,
        starter=starter,
        subscription=subscription,
        modules=modules,
    )


def _current_user(user: User, session_id: str = "session-1") -> CurrentUser:
    return CurrentUser(
        id=user.id,
        username=user.username,
        tenant_id=user.tenant_id,
        role=user.role,
        session_id=session_id,
    )


@pytest.fixture
def member_user(seed: Seed) -> CurrentUser:
    return _current_user(seed.member)


@pytest.fixture
def admin_user(seed: Seed) -> CurrentUser:
    return _current_user(seed.admin, session_id="admin-session")


def _auth_headers(user: User, session_id: str = "session-1") -> Dict[str, str]:
    """Bearer header carrying a token shaped like the auth provider's."""
    token = create_access_token({
        "sub": user.username,
        "user_id": user.id,
        "tenant_id": user.tenant_id,
        "role": user.role,
        "sid": session_id,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest.fixture
async def client(async_session: AsyncSession, cache: QueryCache) -> AsyncGenerator[AsyncClient, None]:
    """Create test client on the test session and fake Redis."""
    from main import app
    from framework.dependencies import get_db, get_query_cache

    async def _get_db():
        yield async_session

    async def _get_query_cache():
        return cache

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_query_cache] = _get_query_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
