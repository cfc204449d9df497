"""Fail abandoned generations and purge old failed lessons.

Run from the repository root on a schedule:

  python -m scripts.cleanup_lessons [--retention-days N]
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging

logger = logging.getLogger("scripts.cleanup_lessons")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
  parser.add_argument("--retention-days", type=int, default=None, help="Override LESSONFORGE_FAILED_RETENTION_DAYS for this run.")
  return parser.parse_args(argv)


async def _run(retention_days: int | None) -> int:
  from app.config import get_settings
  from app.core.database import get_db_engine
  from app.services.maintenance import run_lesson_maintenance
  from app.storage.factory import _get_repo

  settings = get_settings()
  if retention_days is not None:
    if retention_days <= 0:
      raise ValueError("--retention-days must be a positive integer.")
    settings = dataclasses.replace(settings, failed_retention_days=retention_days)

  try:
    report = await run_lesson_maintenance(_get_repo(settings), settings=settings)
  finally:
    engine = get_db_engine()
    if engine is not None:
      await engine.dispose()

  logger.info("Cleanup finished stuck_failed=%d failed_deleted=%d", report.stuck_failed, report.failed_deleted)
  return 0


def main(argv: list[str] | None = None) -> int:
  logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
  args = _parse_args(argv)
  return asyncio.run(_run(args.retention_days))


if __name__ == "__main__":
  raise SystemExit(main())
