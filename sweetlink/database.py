from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sweetlink.config import settings


def engine_options(url: str) -> dict:
    """Per-dialect options that bound how long a store operation may block."""
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": settings.DB_COMMAND_TIMEOUT_SECONDS}}
    if url.startswith("postgresql+asyncpg"):
        return {
            "pool_pre_ping": True,
            "pool_timeout": settings.DB_POOL_TIMEOUT_SECONDS,
            "connect_args": {"command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS},
        }
    return {"pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    **engine_options(settings.DATABASE_URL),
)

async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all SQLAlchemy ORM models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency that yields an async database session.

    One session per request: commit on success, roll back on any exception so
    multi-step operations (redeem + link) are all-or-nothing.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def utcnow() -> datetime:
    """Timezone-aware current UTC time, used as the Python-side column default."""
    return datetime.now(timezone.utc)
