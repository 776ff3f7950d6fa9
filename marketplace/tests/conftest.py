"""Shared fixtures: a throwaway SQLite database per test and an API client."""

from typing import Any, Awaitable, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from marketplace.api import deps
from marketplace.database import get_session_factory
from marketplace.main import app
from marketplace.models import Base, Shop
from marketplace.services.geo_math import Coordinate


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'marketplace-test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_shop(session_factory) -> Callable[..., Awaitable[Shop]]:
    """Insert a shop; pass `at=Coordinate(...)` to give it a saved location."""
    counter = {"n": 0}

    async def _add(name: Optional[str] = None, at: Optional[Coordinate] = None, **fields: Any) -> Shop:
        counter["n"] += 1
        values = {
            "owner_id": f"owner-{counter['n']}",
            "name": name or f"Shop {counter['n']}",
            "is_active": True,
            "is_approved": True,
        }
        if at is not None:
            values.update(latitude=at.latitude, longitude=at.longitude, location_set=True)
        values.update(fields)
        async with session_factory() as session:
            shop = Shop(**values)
            session.add(shop)
            await session.commit()
            await session.refresh(shop)
            return shop

    return _add


@pytest.fixture
def add_rows(session_factory) -> Callable[..., Awaitable[None]]:
    """Insert products/orders (or any mapped rows) in one commit."""

    async def _add(*rows: Any) -> None:
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()

    return _add


@pytest_asyncio.fixture
async def client(session_factory):
    deps._spatial_index_for.cache_clear()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    deps._spatial_index_for.cache_clear()

