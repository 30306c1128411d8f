"""Shared test fixtures for all test modules."""
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

from uptime.database import build_engine, create_tables, session_factory_for
from uptime.models import Check
from uptime.services.sampler import build_sample


@pytest.fixture
async def engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return session_factory_for(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_check(session_factory):
    """Factory fixture storing a check and returning it."""

    async def _make_check(**fields) -> Check:
        values = {
            "name": "example",
            "url": "http://example.com",
            "type": "http",
            "interval_ms": 10000,
            "max_time_ms": 200,
            "tags": [],
            "needs_poll": True,
        }
        values.update(fields)
        async with session_factory() as session:
            check = Check(**values)
            session.add(check)
            await session.commit()
            await session.refresh(check)
            return check

    return _make_check


@pytest.fixture
def add_sample(session_factory):
    """Factory fixture storing a sample for a check at a given time."""

    async def _add_sample(
        check: Check,
        timestamp: datetime,
        status: bool = True,
        time: Optional[int] = 50,
        error: Optional[str] = None,
    ):
        async with session_factory() as session:
            sample = build_sample(check, status, time, "test-monitor", error, timestamp)
            session.add(sample)
            await session.commit()
            return sample

    return _add_sample
