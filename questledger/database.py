"""Database connection and session management."""
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from questledger.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Determine if we need SSL (for Heroku or other cloud databases)
connect_args = {}
needs_ssl = (
    "heroku" in settings.database_url or
    "amazonaws" in settings.database_url or
    settings.environment == "production"
)

if needs_ssl and "sqlite" not in settings.database_url:
    connect_args["ssl"] = "require"
    logger.debug("SSL connection enabled (ssl=require)")
else:
    logger.debug("SSL connection disabled (local development)")

engine_kwargs = {
    "echo": settings.environment == "development",
    "future": True,
    "connect_args": connect_args,
    "pool_pre_ping": True,  # Verify connections before use
}

if "sqlite" not in settings.database_url:
    # Keep production connection usage conservative to stay within hobby-tier limits
    pool_size = max(1, settings.db_pool_size)
    max_overflow = max(0, settings.db_max_overflow)
    if settings.environment == "production":
        pool_size = min(pool_size, 2)
        max_overflow = min(max_overflow, 2)
    engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)

# Create async engine
try:
    engine = create_async_engine(settings.database_url, **engine_kwargs)
    logger.debug("Database engine created successfully")
except Exception as e:
    logger.error(f"Failed to create database engine: {e}")
    raise

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


# Dependency for FastAPI
async def get_db():
    """FastAPI dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
