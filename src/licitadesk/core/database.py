"""
Database configuration.
Async engine, session factory and session dependencies shared by the API
layer and by services that need an isolated session.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from .config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    """Pool options only apply to the PostgreSQL driver."""
    options: Dict[str, Any] = {
        "echo": settings.database.echo or settings.logging.enable_query_logging,
        "future": True,
    }
    if settings.database.is_postgres:
        options.update(
            pool_pre_ping=False,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_timeout=settings.database.pool_timeout,
            pool_recycle=settings.database.pool_recycle,
            connect_args={
                "server_settings": {"application_name": settings.api.app_name},
                "command_timeout": 60,
                "timeout": 30,
            },
        )
    return options


engine: AsyncEngine = create_async_engine(settings.database.url, **_engine_options())


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory with the options every session in the app uses."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent additional queries after commit
        autoflush=False,
    )


AsyncSessionLocal = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Services commit their own units of work; anything left pending is
    committed here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


async def get_websocket_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for WebSocket connections - does NOT auto-commit.

    WebSocket connections are long-lived and manage their own transactions.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Initialize database tables.
    Called on application startup; create_all skips existing tables.
    """
    # Import models so every table is registered on the metadata
    from licitadesk.db import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db(bind: AsyncEngine = engine) -> None:
    """
    Close database connections.
    Called on application shutdown.
    """
    await bind.dispose()
