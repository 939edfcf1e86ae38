"""Shared fixtures.

The environment is set before any turnero import so the module-level
settings and engine point at SQLite instead of Postgres.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("PUBLIC_BASE_URL", "https://turnos.example.com")

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from turnero.core.appointments import AppointmentLifecycle, AppointmentRepository
from turnero.infra.google import SyncResult
from turnero.models.database import Base

NOW = datetime(2030, 1, 1, 9, 0, 0)


@pytest.fixture
def clock():
    """Fixed local time: 2030-01-01 09:00."""
    return lambda: NOW


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def calendar():
    """Calendar double that always succeeds."""
    mock = AsyncMock()
    mock.create_event = AsyncMock(return_value=SyncResult.ok("evt-1"))
    mock.delete_event = AsyncMock(return_value=SyncResult.ok("evt-1"))
    return mock


@pytest.fixture
def spreadsheet():
    """Spreadsheet double that always succeeds."""
    mock = AsyncMock()
    mock.append_row = AsyncMock(return_value=SyncResult.ok("Turnos!A2:H2"))
    mock.update_status = AsyncMock(return_value=SyncResult.ok("Turnos!A2:H2"))
    return mock


@pytest.fixture
def notifier():
    """Notifier double that always delivers."""
    mock = AsyncMock()
    mock.send_created = AsyncMock(return_value=True)
    mock.send_cancelled = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def lifecycle(db_session, calendar, spreadsheet, notifier, clock):
    """Lifecycle manager over the in-memory database."""
    return AppointmentLifecycle(
        repository=AppointmentRepository(db_session),
        calendar=calendar,
        spreadsheet=spreadsheet,
        notifier=notifier,
        clock=clock,
    )
