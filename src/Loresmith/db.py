# src/Loresmith/db.py
from __future__ import annotations

import contextlib
import os
from collections.abc import AsyncIterator

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from Loresmith.config import load_settings
from Loresmith.errors import LoresmithError

settings = load_settings()
log = structlog.get_logger()


def _normalize_url(url: str) -> str:
    # Upgrade to async drivers if user supplies sync URLs
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


DATABASE_URL = _normalize_url(settings.database_url)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_schema_initialized: bool = False


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    # SQLite leaves FK enforcement (and ON DELETE CASCADE) off per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # Hand transaction control to SQLAlchemy so SAVEPOINTs nest correctly
    dbapi_connection.isolation_level = None


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def get_engine() -> AsyncEngine:
    global _engine, _sessionmaker
    if _engine is None:
        kwargs: dict[str, object] = {}
        is_sqlite = DATABASE_URL.startswith("sqlite+aiosqlite://")
        if is_sqlite:
            kwargs.update(connect_args={"timeout": 30})
            # In-memory DBs must share a single connection so the schema persists
            if ":memory:" in DATABASE_URL:
                kwargs.update(poolclass=StaticPool)
            if os.environ.get("LORESMITH_SQLITE_STATIC_POOL") == "1":
                kwargs.update(poolclass=StaticPool)
        elif DATABASE_URL.startswith("postgresql+asyncpg://"):
            kwargs.update(
                pool_pre_ping=True,
                pool_size=5,
                max_overflow=10,
                pool_timeout=30,
            )

        _engine = create_async_engine(DATABASE_URL, **kwargs)
        if is_sqlite:
            event.listen(_engine.sync_engine, "connect", _on_sqlite_connect)
            event.listen(_engine.sync_engine, "begin", _on_sqlite_begin)
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)

        url = make_url(DATABASE_URL)
        backend = "postgres" if DATABASE_URL.startswith("postgresql") else (
            "sqlite" if is_sqlite else "other"
        )
        log.info(
            "db.connection.config",
            backend=backend,
            user=url.username or "",
            host=url.host or "",
            database=url.database or "",
            driver=url.drivername,
        )
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        get_engine()
    return _sessionmaker  # type: ignore[return-value]


async def _ensure_schema_created_if_needed() -> None:
    """Ensure tables exist for in-memory SQLite.

    Real databases are managed by Alembic; only the throwaway in-memory
    database is created on the fly.
    """
    global _schema_initialized
    if _schema_initialized:
        return
    if DATABASE_URL.startswith("sqlite+aiosqlite://") and ":memory:" in DATABASE_URL:
        from Loresmith import models as _models  # noqa: F401

        engine = get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    _schema_initialized = True


@contextlib.asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    await _ensure_schema_created_if_needed()
    sm = get_sessionmaker()
    async with sm() as s:
        try:
            yield s
            await s.commit()
        except LoresmithError as err:
            # Domain errors are expected outcomes; settle quietly
            if err.keeps_writes:
                await s.commit()
            else:
                await s.rollback()
            raise
        except Exception:
            log.error("db.session.error", exc_info=True)
            await s.rollback()
            raise
