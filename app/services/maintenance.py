"""Maintenance services for scheduled background cleanup tasks."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from app.ai.errors import TimeoutExceeded
from app.config import Settings
from app.storage.lessons_repo import LessonsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaintenanceReport:
  stuck_failed: int
  failed_deleted: int


async def run_lesson_maintenance(repo: LessonsRepository, *, settings: Settings, now: datetime.datetime | None = None) -> MaintenanceReport:
  """Fail abandoned generations and purge old failed lessons.

  How/Why:
    - A lesson still `generating` after the generation timeout has no live task
      writing it (process restart, crashed worker), so it is failed with the
      timeout message through the same conditional update the task would use.
    - Failed lessons carry no content and are deleted after the retention window.
  """
  current = now or datetime.datetime.now(datetime.timezone.utc)
  stuck_cutoff = current - datetime.timedelta(seconds=settings.generation_timeout_seconds)
  failed_cutoff = current - datetime.timedelta(days=settings.failed_retention_days)

  stuck = await repo.fail_stuck_lessons(older_than=stuck_cutoff, error_message=TimeoutExceeded(settings.generation_timeout_seconds).message)
  deleted = await repo.delete_failed_lessons(older_than=failed_cutoff)
  logger.info("Lesson maintenance complete stuck_failed=%d failed_deleted=%d", stuck, deleted)
  return MaintenanceReport(stuck_failed=stuck, failed_deleted=deleted)
