from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from admissions.config import settings


def build_engine(url: str):
    """Create the async engine for ``url``.

    PostgreSQL engines get the configured isolation level and, optionally, SSL.
    Other backends (SQLite in tests) keep their driver defaults.
    """
    options = {"echo": False, "future": True}
    if url.startswith("postgresql"):
        options["isolation_level"] = settings.DATABASE_ISOLATION_LEVEL
        if settings.DATABASE_SSL:
            options["connect_args"] = {"ssl": True}
    return create_async_engine(url, **options)


def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        expire_on_commit=False,
        class_=AsyncSession,
    )


engine = build_engine(settings.DATABASE_URL)

# Create base class for models
Base = declarative_base()

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)

# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
