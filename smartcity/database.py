from typing import AsyncGenerator
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from fastapi import Request

from .config import normalize_database_url


def _engine_kwargs(database_url: str) -> dict:
    engine_kwargs = {"echo": False, "future": True}
    if database_url.startswith("sqlite"):
        # Allow connections to be used across threads (useful for uvicorn worker threads)
        engine_kwargs["connect_args"] = {"check_same_thread": False}

        if (
            ":memory:" in database_url
            or "mode=memory" in database_url
            or database_url == "sqlite+aiosqlite://"
        ):
            # In-memory DBs must share one connection or the schema disappears
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["poolclass"] = NullPool
    elif "asyncpg" in database_url:
        engine_kwargs["poolclass"] = NullPool
    return engine_kwargs


class Database:
    """Owns the async engine and session factory for one application instance."""

    def __init__(self, database_url: str):
        self.url = normalize_database_url(database_url)
        self.engine = create_async_engine(self.url, **_engine_kwargs(self.url))
        self.session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_db(self) -> None:
        # Importing models registers the tables on SQLModel.metadata
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    db: Database = request.app.state.db
    async with db.session_factory() as session:
        yield session
