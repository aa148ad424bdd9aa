"""Alembic environment for the Loresmith schema.

The target URL comes from DATABASE_URL (with ``.env`` and ``.env.local``
applied on top of the process environment), else from Loresmith settings.
Migrations always run on a synchronous driver.
"""

import os
import pathlib
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url

from Loresmith import models  # noqa: F401
from Loresmith.config import load_settings
from Loresmith.db import Base

_ROOT = pathlib.Path(__file__).resolve().parents[1]

# Later files override earlier ones
for name, override in ((".env", False), (".env.local", True)):
    path = _ROOT / name
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
target_metadata = Base.metadata

_SYNC_DRIVERS = {"postgresql": "postgresql+psycopg", "sqlite": "sqlite"}


def migration_url() -> str:
    raw = os.environ.get("DATABASE_URL") or load_settings().database_url
    url = make_url(raw)
    backend = url.get_backend_name()
    if backend in _SYNC_DRIVERS:
        url = url.set(drivername=_SYNC_DRIVERS[backend])
    return url.render_as_string(hide_password=False)


def run_migrations_offline() -> None:
    context.configure(url=migration_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(migration_url())
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite has no ALTER CONSTRAINT
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
