"""Unit tests for the abandoned-lesson sweep and failed-lesson retention."""

from __future__ import annotations

import dataclasses
import datetime

import pytest
from app.config import get_settings
from app.services.maintenance import run_lesson_maintenance
from app.storage.lessons_repo import LessonRecord
from tests.fakes import InMemoryLessonsRepository

NOW = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


def _record(lesson_id: str, status: str, *, age: datetime.timedelta, **extra) -> LessonRecord:
  stamp = NOW - age
  return LessonRecord(lesson_id=lesson_id, title="Lesson", outline=f"Outline {lesson_id}", status=status, created_at=stamp, updated_at=stamp, **extra)


@pytest.mark.anyio
async def test_stuck_lessons_are_failed_with_timeout_message(repo: InMemoryLessonsRepository) -> None:
  settings = dataclasses.replace(get_settings(), generation_timeout_seconds=600)
  repo.seed(_record("stuck", "generating", age=datetime.timedelta(minutes=11)))
  repo.seed(_record("fresh", "generating", age=datetime.timedelta(minutes=2)))

  report = await run_lesson_maintenance(repo, settings=settings, now=NOW)

  assert report.stuck_failed == 1
  assert repo.records["stuck"].status == "failed"
  assert repo.records["stuck"].error_message == "Generation timeout after 10 minutes"
  assert repo.records["fresh"].status == "generating"


@pytest.mark.anyio
async def test_old_failed_lessons_are_deleted(repo: InMemoryLessonsRepository) -> None:
  settings = dataclasses.replace(get_settings(), failed_retention_days=7)
  repo.seed(_record("old-failure", "failed", age=datetime.timedelta(days=8), error_message="boom"))
  repo.seed(_record("recent-failure", "failed", age=datetime.timedelta(days=1), error_message="boom"))
  repo.seed(_record("old-success", "generated", age=datetime.timedelta(days=30), generated_content="code"))

  report = await run_lesson_maintenance(repo, settings=settings, now=NOW)

  assert report.failed_deleted == 1
  assert set(repo.records) == {"recent-failure", "old-success"}
