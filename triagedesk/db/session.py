from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from triagedesk.config import settings
from triagedesk.db.base import Base


def build_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False, pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    # Importing the models registers their tables on Base.metadata
    import triagedesk.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


engine = build_engine()
async_session_factory = build_session_factory(engine)
