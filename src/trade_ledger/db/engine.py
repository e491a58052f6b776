"""AsyncEngine + session factory for the trade store database."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from trade_ledger.config import Settings

APPLICATION_NAME = "trade_ledger"


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create async SQLAlchemy engine (asyncpg) sized from Settings."""
    connect_args = {}
    if settings.DATABASE_URL.startswith("postgresql+asyncpg"):
        connect_args["server_settings"] = {"application_name": APPLICATION_NAME}
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_use_lifo=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)
