"""Async SQLAlchemy engine and request-scoped sessions.

With DATABASE_URL set, every request that touches courses or enrollments
runs inside one session: the repos share it, and the whole request commits
or rolls back as a unit.  Without DATABASE_URL, ``engine`` and
``async_session_factory`` stay None and the API wires in-memory repos.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for coursehub.db.tables."""


def _build_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_max_overflow,
        pool_pre_ping=True,
    )


engine: AsyncEngine | None = (
    _build_engine(SETTINGS.database_url) if SETTINGS.database_url else None
)
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine is not None else None
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; commit when the request succeeds, roll back otherwise.

    A failed enroll or lesson completion therefore leaves no partial rows.
    """
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_optional_session() -> AsyncGenerator[AsyncSession | None, None]:
    """Like get_async_session, but yields None when no database is configured."""
    if async_session_factory is None:
        yield None
        return
    async for session in get_async_session():
        yield session


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured; courses and enrollments live in memory")
        yield
        return

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database reachable: %s", engine.url.render_as_string(hide_password=True))
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
