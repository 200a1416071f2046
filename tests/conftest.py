"""Pytest fixtures for testing."""

import fnmatch
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.auth import UserRole, create_access_token
from processing_inventory.cache.processing_batch_cache import ProcessingBatchCache
from processing_inventory.cache.store import CacheUnavailableError
from processing_inventory.database import get_session
from processing_inventory.domain.models import Procurement
from processing_inventory.main import app

STAFF_USER_ID = 7
ADMIN_USER_ID = 1


class InMemoryCacheStore:
    """CacheStore double keeping values and TTLs in dicts."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise CacheUnavailableError("cache is down")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def keys(self, pattern: str) -> list[str]:
        self._check()
        return [k for k in self.data if fnmatch.fnmatchcase(k, pattern)]

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture(name="cache_store")
def cache_store_fixture() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture(name="batch_cache")
def batch_cache_fixture(cache_store: InMemoryCacheStore) -> ProcessingBatchCache:
    return ProcessingBatchCache(cache_store, ttl_seconds=3600)


@pytest_asyncio.fixture(name="session")
async def session_fixture() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory SQLite database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(name="client")
async def client_fixture(
    session: AsyncSession,
    cache_store: InMemoryCacheStore,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create an API client sharing the test session and cache store."""

    async def get_session_override() -> AsyncSession:
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.state.cache_store = cache_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    del app.state.cache_store


@pytest.fixture(name="staff_headers")
def staff_headers_fixture() -> dict[str, str]:
    token = create_access_token(STAFF_USER_ID, UserRole.STAFF)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="admin_headers")
def admin_headers_fixture() -> dict[str, str]:
    token = create_access_token(ADMIN_USER_ID, UserRole.ADMIN)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="add_procurement")
def add_procurement_fixture(session: AsyncSession):
    """Factory inserting procurement rows directly; the API never creates them."""

    async def add_procurement(
        procurement_number: str,
        quantity: float = 100.0,
        crop: str = "Turmeric",
        lot_no: int = 1,
        processing_batch_id: Optional[int] = None,
    ) -> Procurement:
        procurement = Procurement(
            procurement_number=procurement_number,
            crop=crop,
            lot_no=lot_no,
            quantity=quantity,
            date_of_procurement=datetime(2025, 5, 1, tzinfo=timezone.utc),
            processing_batch_id=processing_batch_id,
        )
        session.add(procurement)
        await session.commit()
        await session.refresh(procurement)
        return procurement

    return add_procurement
