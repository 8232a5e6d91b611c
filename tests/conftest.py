from __future__ import annotations

import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["METADATA_URL"] = ""

from inventory_tracker import models  # noqa: E402,F401
from inventory_tracker.database import Base  # noqa: E402
from inventory_tracker.reconciler import InventoryReconciler  # noqa: E402
from inventory_tracker.store import SqlInventoryStore  # noqa: E402


@pytest_asyncio.fixture()
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture()
def store(session_factory):
    return SqlInventoryStore(session_factory)


@pytest.fixture()
def reconciler(store):
    return InventoryReconciler(store)
