import asyncio
import logging
from logging.config import fileConfig
from time import perf_counter

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
  fileConfig(config.config_file_name)

# Must import models so they are attached to Base.metadata
import app.schema.lessons  # noqa: E402, F401
from app.core.database import Base, _database_url  # noqa: E402

target_metadata = Base.metadata

_migration_logger = logging.getLogger("alembic.runtime.migration")


def _require_database_url() -> str:
  url = _database_url()
  if not url:
    raise RuntimeError("LESSONFORGE_PG_DSN must be set to run migrations.")
  return url


def run_migrations_offline() -> None:
  """Emit SQL for the configured database without connecting."""
  context.configure(url=_require_database_url(), target_metadata=target_metadata, literal_binds=True, dialect_opts={"paramstyle": "named"}, compare_type=True)

  with context.begin_transaction():
    context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
  """Run migrations on the provided connection while logging revisions."""
  context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
  migration_context = context.get_context()
  current_revision = migration_context.get_current_revision() or "base"
  start = perf_counter()
  _migration_logger.info("Starting migration run from %s", current_revision)

  with context.begin_transaction():
    context.run_migrations()

  final_heads = ", ".join(migration_context.get_current_heads()) or "none"
  _migration_logger.info("Completed migration run at %s in %.3fs", final_heads, perf_counter() - start)


async def run_async_migrations() -> None:
  """Run migrations with an async engine so settings match runtime drivers."""
  configuration = config.get_section(config.config_ini_section) or {}
  configuration["sqlalchemy.url"] = _require_database_url()
  connectable = async_engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

  async with connectable.connect() as connection:
    await connection.run_sync(do_run_migrations)

  await connectable.dispose()


def run_migrations_online() -> None:
  asyncio.run(run_async_migrations())


if context.is_offline_mode():
  run_migrations_offline()
else:
  run_migrations_online()
