"""
Appointment store engine.

One async engine per process. Request handlers get a unit of work through
`get_db`; background code and the health check open one with
`appointment_session`. Either way the unit commits when the block exits
cleanly and rolls back otherwise.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from turnero.config import settings
from turnero.models.database import Base

logger = logging.getLogger(__name__)


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,
)

# Appointments stay readable after commit; the views render them afterwards
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def appointment_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a unit of work over the appointment tables."""
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping `appointment_session`."""
    async with appointment_session() as session:
        yield session


async def create_tables() -> None:
    """Create the appointment and turn tables if missing (development)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()


async def check_db_health() -> bool:
    """True when a trivial query round-trips."""
    try:
        async with appointment_session() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False
    return True
