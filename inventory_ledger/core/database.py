"""
Engine and session factory

Services open their own sessions from AsyncSessionLocal (or an injected
factory) and own the transaction boundaries; there is no request-scoped
session dependency.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from inventory_ledger.core.config import settings


def build_engine_options(database_url: str, environment: str) -> dict:
    """Pool options for create_async_engine."""
    # SQLite pools take no sizing arguments
    if database_url.startswith("sqlite"):
        return {}

    options = {"pool_pre_ping": True}
    if environment == "production":
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    else:
        options.update(pool_size=2, max_overflow=5)
    return options


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **build_engine_options(settings.DATABASE_URL, settings.ENVIRONMENT),
)

# expire_on_commit off: records are read after the adjustment transaction closes
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def create_all_tables(bind=None) -> None:
    """Create ledger tables (development bootstrap and tests)."""
    import inventory_ledger.models  # noqa: F401  registers the mappers

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
