# tests/conftest.py

import os
from collections.abc import AsyncIterator, Iterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

# Point the app at a throwaway in-memory database before any app modules are
# imported. Each test gets a fresh engine (and so a fresh database).
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

# TOML/.env may carry another URL, so override the module-level constant too
import Loresmith.db as _db  # noqa: E402

_db.DATABASE_URL = os.environ["DATABASE_URL"]

# Import models so all ORM tables are registered on Base.metadata before create_all
from Loresmith import models as _models  # noqa: F401,E402
from Loresmith.db import Base, get_engine, get_sessionmaker  # noqa: E402
from Loresmith.metrics import reset_counters  # noqa: E402


def _reset_engine_state() -> None:
    _db._engine = None
    _db._sessionmaker = None
    _db._schema_initialized = False


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    reset_counters()
    yield None
    reset_counters()


@pytest.fixture
async def db() -> AsyncIterator[AsyncSession]:
    _reset_engine_state()
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _db._schema_initialized = True
    sm = get_sessionmaker()
    async with sm() as s:
        try:
            yield s
        finally:
            # Explicit close releases the aiosqlite connection before dispose
            await s.rollback()
            await s.close()
    await engine.dispose()
    _reset_engine_state()


@pytest.fixture
def client() -> Iterator:
    """TestClient over a fresh in-memory database.

    The engine is created lazily inside the client's event loop and disposed
    there before the loop shuts down.
    """
    from fastapi.testclient import TestClient

    from Loresmith.app import app

    _reset_engine_state()
    with TestClient(app) as c:
        yield c
        if _db._engine is not None:
            c.portal.call(_db._engine.dispose)
    _reset_engine_state()
