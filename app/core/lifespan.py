import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from app.core.database import get_db_engine
from app.core.logging import _initialize_logging
from app.services.maintenance import run_lesson_maintenance
from app.storage.factory import _get_repo
from fastapi import FastAPI


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, sweep abandoned lessons, and release the engine on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except Exception:  # noqa: BLE001
    logger.warning("Initial logging setup failed; will retry on lifespan.", exc_info=True)

  # Lessons left generating by a previous process have no task that will finish them.
  if settings.pg_dsn:
    logger.info("Database configured; LESSONFORGE_PG_DSN=%s", _redact_dsn(settings.pg_dsn))
    try:
      await run_lesson_maintenance(_get_repo(settings), settings=settings)
    except Exception:  # noqa: BLE001
      logger.warning("Startup lesson maintenance failed.", exc_info=True)
  else:
    logger.warning("LESSONFORGE_PG_DSN is not set; lesson endpoints will fail until a database is configured.")

  yield

  engine = get_db_engine()
  if engine is not None:
    await engine.dispose()
    logger.info("Database engine disposed.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
