from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool
from watchlist.config import DATABASE_URL, SQL_ECHO
from typing import AsyncGenerator


def _async_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


_engine_kwargs = {"echo": SQL_ECHO, "future": True}
# aiosqlite connections must not outlive the event loop that opened them
if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(_async_url(DATABASE_URL), **_engine_kwargs)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
