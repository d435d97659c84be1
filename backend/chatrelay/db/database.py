"""
Database connection and session management using SQLAlchemy async.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from chatrelay.core.config import settings


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """
    Create a session factory for the given engine.

    Objects stay readable after commit, so store methods can hand
    detached rows back to their callers.
    """
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine for PostgreSQL
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    pool_pre_ping=True,  # Verify connections before using them
)

AsyncSessionLocal = build_session_factory(engine)

# Base class for all models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Dependency function to get database session.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db(bind: AsyncEngine = engine):
    """
    Create all tables on the given engine.
    Called on application startup.
    """
    # Import all models here to ensure they are registered
    from chatrelay.models import user, conversation, message  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
