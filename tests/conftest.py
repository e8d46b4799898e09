import os

# Keep the application's module-level engine off any real server during tests
os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite://')

import pytest
from fastapi import Depends
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

import group_ledger.models  # noqa: F401
from group_ledger.main import app
from group_ledger.db.database import Base, get_db
from group_ledger.routes.deps import get_operator_service, get_store
from group_ledger.services.billing_service import BillingService
from group_ledger.services.ledger_store import LedgerStore
from group_ledger.services.operator_service import OperatorService

# Set to a postgresql+asyncpg URL to run the suite against PostgreSQL
TEST_DATABASE_URL = os.environ.get('TEST_DATABASE_URL')

ADMIN_ID = '1001'


@pytest.fixture
async def engine(tmp_path):
    """Fresh database per test, file backed so concurrent sessions really race."""
    url = TEST_DATABASE_URL or f'sqlite+aiosqlite:///{tmp_path / "ledger_test.db"}'
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def store(engine):
    return LedgerStore(engine)


@pytest.fixture
def billing(store):
    return BillingService(store)


@pytest.fixture
async def db_session(engine):
    """Database session for direct queries in tests."""
    TestSession = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with TestSession() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(engine, store):
    """Async HTTP client wired to the per-test database."""
    TestSession = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with TestSession() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_operator_service(db: AsyncSession = Depends(get_db)):
        return OperatorService(db, admin_ids=frozenset({ADMIN_ID}))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_operator_service] = override_get_operator_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()
