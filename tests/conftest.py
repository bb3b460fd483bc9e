"""
Pytest configuration and fixtures for webcms tests.
"""
import uuid
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# IMPORTANT: Patch PostgreSQL types for SQLite compatibility
# Must be done before importing any models
import sqlalchemy.dialects.postgresql as pg_dialect
from sqlalchemy.types import TypeDecorator, CHAR
import uuid as uuid_module

# Custom UUID type that works with SQLite
class SQLiteUUID(TypeDecorator):
    """SQLite-compatible UUID type."""
    impl = CHAR(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return uuid_module.UUID(value)
        return value

pg_dialect.JSONB = JSON
pg_dialect.UUID = SQLiteUUID

from webcms.core.deps import (
    get_asset_store_dep,
    get_cleanup_scheduler_dep,
    get_session_factory,
)
from webcms.database import get_db
from webcms.integrations.storage import LocalAssetStore
from webcms.models import Base
from webcms.services.asset_cleanup import AssetCleanupScheduler
from webcms.services.cascade_delete import CascadeDeletionEngine
from webcms.services.ordering import OrderingMaintainer
from tests.fixtures.content_tree import (
    ASSET_BASE_URL,
    EDITOR_ID,
    OWNER_ID,
    USER_ID,
    ContentTree,
    build_content_tree,
)

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def content_tree(session_factory) -> ContentTree:
    """Committed website tree (see tests/fixtures/content_tree.py)."""
    async with session_factory() as session:
        return await build_content_tree(session)


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def asset_store(tmp_path) -> LocalAssetStore:
    """Local asset store whose delete is mocked."""
    store = LocalAssetStore(base_path=str(tmp_path / "assets"), base_url=ASSET_BASE_URL)
    store.delete = AsyncMock(return_value=True)
    return store


@pytest.fixture
def cleanup_scheduler(asset_store) -> AssetCleanupScheduler:
    return AssetCleanupScheduler(asset_store, batch_size=5, batch_delay=0)


@pytest.fixture
def deletion_engine(session_factory, asset_store, cleanup_scheduler) -> CascadeDeletionEngine:
    return CascadeDeletionEngine(session_factory, asset_store, cleanup_scheduler)


@pytest.fixture
def ordering(session_factory) -> OrderingMaintainer:
    return OrderingMaintainer(session_factory)


# ============================================================================
# FastAPI App Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def app(session_factory, asset_store, cleanup_scheduler) -> FastAPI:
    """Create test FastAPI application."""
    from webcms.main import app as main_app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_session_factory] = lambda: session_factory
    main_app.dependency_overrides[get_asset_store_dep] = lambda: asset_store
    main_app.dependency_overrides[get_cleanup_scheduler_dep] = lambda: cleanup_scheduler

    yield main_app

    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Authentication Fixtures
# ============================================================================

def bearer(principal_id: uuid.UUID) -> dict:
    from webcms.core.security import create_access_token

    token = create_access_token(data={"sub": str(principal_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers() -> dict:
    """Authentication headers for the website owner."""
    return bearer(OWNER_ID)


@pytest.fixture
def editor_headers() -> dict:
    """Authentication headers for a website editor."""
    return bearer(EDITOR_ID)


@pytest.fixture
def user_headers() -> dict:
    """Authentication headers for a website user without editing rights."""
    return bearer(USER_ID)
