"""
alembic.env

Alembic migration environment for the session key-value table.

Responsibilities:
- Point autogeneration at `delivery_auth.db.base.Base.metadata`.
- Run migrations offline (SQL script) or online against the configured database.

Notes:
- Executed by Alembic only. The async URL is swapped for its sync driver because
  Alembic runs migrations on a blocking connection.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from delivery_auth.db import models  # noqa: F401  # registers kv_entries on Base.metadata
from delivery_auth.db.base import Base
from delivery_auth.settings import Settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_database_url() -> str:
    url = os.environ.get("DELIVERY_AUTH_DATABASE_URL") or Settings().database_url
    return url.replace("+aiosqlite", "")


def run_migrations_offline() -> None:
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = _get_database_url()
    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # SQLite cannot ALTER most columns in place; batch mode recreates the table.
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
