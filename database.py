"""
Database Configuration and Session Management
============================================

This module provides the async database engine, session factory, and table
creation for the SMM Storefront Bot.
"""

import logging
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from config import Config
from models import Base

logger = logging.getLogger(__name__)

if not Config.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")


def _to_async_url(url: str) -> str:
    """Convert a plain database URL into its async-driver form"""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        # asyncpg uses 'ssl' instead of 'sslmode' parameter
        url = url.replace("sslmode=require", "ssl=require")
        url = url.replace("sslmode=prefer", "ssl=prefer")
        url = url.replace("sslmode=disable", "ssl=disable")
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://") and "+aiosqlite" not in url:
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


async_database_url = _to_async_url(Config.DATABASE_URL)

if async_database_url.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions
    async_engine = create_async_engine(
        async_database_url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=Config.DATABASE_ECHO,
    )
else:
    async_engine = create_async_engine(
        async_database_url,
        pool_size=5,           # Base pool for a single bot process
        max_overflow=10,       # Burst capacity during broadcasts
        pool_pre_ping=True,    # Validate connections before use
        pool_recycle=3600,     # Recycle connections every hour
        pool_timeout=30,       # Wait max 30 seconds for a connection
        echo=Config.DATABASE_ECHO,
        connect_args={
            "server_settings": {
                "application_name": "smm_storefront_bot",  # For monitoring in pg_stat_activity
            },
            "timeout": 10,
            "command_timeout": 30,
        }
    )

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False  # Objects stay readable after commit in background jobs
)


@asynccontextmanager
async def get_async_session():
    """
    Async context manager for database sessions.

    Commits on clean exit, rolls back on any exception and re-raises.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(select(User).where(...))
            user = result.scalar_one_or_none()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables():
    """Create all database tables if they don't exist"""
    try:
        logger.info("🏗️ Creating database tables (if they don't exist)...")
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables ready")
        return True
    except Exception as e:
        logger.error(f"❌ Error creating tables: {e}")
        return False


async def test_connection() -> bool:
    """Check the database answers a trivial query"""
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {e}")
        return False


async def dispose_engine():
    """Close all pooled connections"""
    await async_engine.dispose()
    logger.info("🔌 Database engine disposed")
