"""Alembic runner for the inventory database (clinics, drugs, units)."""
from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from rxstock.models import drug  # noqa: F401  registers the tables on SQLModel.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DB_URL (same variable the app reads) wins over alembic.ini
url = os.getenv("DB_URL") or config.get_main_option("sqlalchemy.url")

MIGRATION_OPTIONS = {
    "target_metadata": SQLModel.metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def _run(**options) -> None:
    context.configure(**options, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _run(connection=connection)


async def _run_online() -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    # Offline SQL rendering needs no driver
    _run(url=url.replace("+asyncpg", ""), literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(_run_online())
