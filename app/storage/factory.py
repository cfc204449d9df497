"""Repository construction helpers."""

from __future__ import annotations

from app.config import Settings
from app.storage.lessons_repo import LessonsRepository


def _get_repo(settings: Settings) -> LessonsRepository:
  """Return the lessons repository for the configured database."""
  if not settings.pg_dsn:
    raise RuntimeError("Database connection is not configured (LESSONFORGE_PG_DSN is missing).")

  # Import lazily so unit tests can run without the database driver configured.
  from app.storage.postgres_lessons_repo import PostgresLessonsRepository

  return PostgresLessonsRepository()
