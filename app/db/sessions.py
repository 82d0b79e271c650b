import logging
from contextlib import asynccontextmanager
from app.core.config import settings
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker, create_async_engine)

# Initialize the logger for async database events
logger = logging.getLogger(__name__)

# --- DATABASE URL CONFIGURATION ---

db_url = settings.database_url

if not db_url:
    raise RuntimeError("DATABASE_URL is not set")

if db_url.startswith("postgresql://"):
    # create async version for the application
    async_db = db_url.replace('postgresql://', 'postgresql+asyncpg://')
else:
    async_db = db_url


# --- ASYNC ENGINE CONFIG (FastAPI)

async_engine = create_async_engine(
    async_db,
    echo=False,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_timeout=settings.storage_timeout_seconds,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_= AsyncSession,
    expire_on_commit= False,
)

# --- FASTAPI DEPENDENCY
async def get_async_session() -> AsyncSession:
    """
    FastAPI Dependency that provides an asynchronous database session.
    """
    async with AsyncSessionLocal() as session:
        try:
            logger.debug("Database: New async session yielded for API request.")
            yield session
        except Exception as e:
            await session.rollback()
            logger.exception(f"Database: Async session error: {e}")
            raise
        finally:
            await session.close()

# --- CONTEXT MANAGER ---

@asynccontextmanager
async def session_scope():
    """
    Provide a transactional scope around a series of operations
    (used by the reconciliation repair script).
    """
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Database Scope Error: {e}")
        raise
    finally:
        await session.close()
