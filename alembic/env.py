# alembic/env.py
from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from planledger.core.config import settings
from planledger.db import models  # noqa: F401  (registers tables on Base.metadata)
from planledger.db.base import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _choose_url() -> str:
    # -x sqlalchemy_url=... wins, then env, then application settings
    x = context.get_x_argument(as_dictionary=True)
    if x.get("sqlalchemy_url"):
        return x["sqlalchemy_url"]
    for k in ("ALEMBIC_DATABASE_URL", "DATABASE_URL", "ASYNC_DATABASE_URL"):
        v = os.getenv(k)
        if v:
            return v
    return settings.DATABASE_URL


def run_migrations_offline() -> None:
    context.configure(
        url=_choose_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _do_run_migrations(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = _choose_url()
    connectable = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(_do_run_migrations)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
