# class_registration/core/database.py
"""Database connection and session management using SQLAlchemy."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text
import logging

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str = None, **overrides) -> AsyncEngine:
    """Create an async engine with per-dialect connection arguments"""
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        options = {
            "echo": False,
            # Writers wait on the file lock instead of failing immediately
            "connect_args": {"timeout": settings.lock_timeout_seconds},
        }
    else:
        options = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
            "echo": (settings.environment == 'development'),
            "connect_args": {
                "command_timeout": settings.statement_timeout_seconds,
                "server_settings": {
                    "application_name": settings.app_name,
                    "statement_timeout": f"{settings.statement_timeout_seconds}s",
                    "idle_in_transaction_session_timeout": "60s",
                    # Bounded waits on row and advisory locks
                    "lock_timeout": f"{int(settings.lock_timeout_seconds)}s",
                }
            },
        }

    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


engine = build_engine()

# Regular session factory for API requests
AsyncSessionLocal = build_session_factory(engine)


def is_postgres(session: AsyncSession) -> bool:
    return session.bind is not None and session.bind.dialect.name == "postgresql"


async def create_all(bind: AsyncEngine = None):
    """Create tables directly from metadata (local development and tests)"""
    from ..models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def health_check_db(bind: AsyncEngine = None) -> bool:
    """Fast health check with timeout handling"""
    try:
        async with (bind or engine).connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# Cleanup function for application shutdown
async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
