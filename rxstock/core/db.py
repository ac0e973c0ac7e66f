import os

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

# ---------------------------------------------------------------------------
# Inventory DB  (drugs, units, clinics)
# ---------------------------------------------------------------------------
DATABASE_URL = os.getenv(
    "DB_URL",
    "postgresql+asyncpg://rxstock:rxstock@db:5432/rxstock",
)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "10"))
# asyncpg per-statement timeout (seconds)
COMMAND_TIMEOUT = float(os.getenv("DB_COMMAND_TIMEOUT", "15"))


def create_engine(url: str | None = None) -> AsyncEngine:
    """Build the inventory engine. The caller owns it and must dispose it."""
    return create_async_engine(
        url or DATABASE_URL,
        echo=False,
        future=True,
        pool_size=POOL_SIZE,
        max_overflow=10,
        pool_timeout=POOL_TIMEOUT,
        pool_pre_ping=True,
        connect_args={"command_timeout": COMMAND_TIMEOUT},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
