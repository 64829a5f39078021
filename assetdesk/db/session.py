"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in production; SQLite (aiosqlite) for local runs and tests.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from assetdesk.core.config import settings


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    engine_args: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if "postgresql" in url:
        engine_args.update({"pool_size": 20, "max_overflow": 10, "pool_recycle": 300})
    engine_args.update(overrides)

    async_engine = create_async_engine(url, **engine_args)

    if url.startswith("sqlite"):
        # SQLite leaves foreign keys off unless asked per connection
        @event.listens_for(async_engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_conn, _record):  # pragma: no cover - driver hook
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return async_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
async_session_factory = build_session_factory(engine)
