"""Postgres-backed repository for lesson persistence using SQLAlchemy."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy import delete, func, select, update

from app.core.database import get_session_factory
from app.schema.lessons import Lesson, LessonStatus
from app.storage.lessons_repo import GENERATING_TITLE, LessonPage, LessonRecord, LessonsRepository, LessonStats, SortField, SortOrder, cap_error_message

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {"created_at": Lesson.created_at, "updated_at": Lesson.updated_at}


class PostgresLessonsRepository(LessonsRepository):
  """Persist lessons to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_lesson(self, *, lesson_id: str, outline: str, title: str = GENERATING_TITLE) -> LessonRecord:
    """Insert a lesson in the generating state."""
    async with self._session_factory() as session:
      lesson = Lesson(lesson_id=lesson_id, title=title, outline=outline, status=LessonStatus.GENERATING.value)
      session.add(lesson)
      await session.commit()
      await session.refresh(lesson)
      return self._model_to_record(lesson)

  async def get_lesson(self, lesson_id: str) -> LessonRecord | None:
    async with self._session_factory() as session:
      lesson = await session.get(Lesson, lesson_id)
      return self._model_to_record(lesson) if lesson else None

  async def find_recent_duplicate(self, outline: str, *, since: datetime.datetime) -> LessonRecord | None:
    """Return the newest in-flight or finished lesson with the same outline created after `since`."""
    async with self._session_factory() as session:
      stmt = (
        select(Lesson)
        .where(Lesson.outline == outline, Lesson.status.in_([LessonStatus.GENERATING.value, LessonStatus.GENERATED.value]), Lesson.created_at >= since)
        .order_by(Lesson.created_at.desc())
        .limit(1)
      )
      lesson = (await session.execute(stmt)).scalars().first()
      return self._model_to_record(lesson) if lesson else None

  async def mark_generated(self, lesson_id: str, *, title: str, generated_content: str) -> bool:
    if not generated_content:
      raise ValueError("Generated lessons require content.")
    values = {"status": LessonStatus.GENERATED.value, "title": title, "generated_content": generated_content, "error_message": None, "updated_at": func.now()}
    return await self._finish(lesson_id, values)

  async def mark_failed(self, lesson_id: str, *, error_message: str) -> bool:
    values = {"status": LessonStatus.FAILED.value, "generated_content": None, "error_message": cap_error_message(error_message), "updated_at": func.now()}
    return await self._finish(lesson_id, values)

  async def _finish(self, lesson_id: str, values: dict) -> bool:
    """Apply a terminal transition only while the lesson is still generating."""
    async with self._session_factory() as session:
      stmt = update(Lesson).where(Lesson.lesson_id == lesson_id, Lesson.status == LessonStatus.GENERATING.value).values(**values)
      result = await session.execute(stmt)
      await session.commit()

    finished = bool(result.rowcount)
    if not finished:
      logger.warning("Terminal write skipped lesson_id=%s status=%s: lesson is no longer generating", lesson_id, values["status"])
    return finished

  async def list_lessons(self, *, page: int, limit: int, status: str | None = None, sort_by: SortField = "created_at", sort_order: SortOrder = "desc") -> LessonPage:
    """Return a page of lessons with an optional status filter, and the total count."""
    column = _SORT_COLUMNS.get(sort_by, Lesson.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    async with self._session_factory() as session:
      stmt = select(Lesson).order_by(ordering, Lesson.lesson_id).limit(limit).offset((page - 1) * limit)
      count_stmt = select(func.count()).select_from(Lesson)
      if status:
        stmt = stmt.where(Lesson.status == status)
        count_stmt = count_stmt.where(Lesson.status == status)

      total = await session.scalar(count_stmt)
      lessons = (await session.execute(stmt)).scalars().all()
      return LessonPage(items=[self._model_to_record(lesson) for lesson in lessons], total=total or 0, page=page, limit=limit)

  async def get_stats(self) -> LessonStats:
    async with self._session_factory() as session:
      rows = (await session.execute(select(Lesson.status, func.count()).group_by(Lesson.status))).all()

    counts = {status: count for status, count in rows}
    generating = counts.get(LessonStatus.GENERATING.value, 0)
    generated = counts.get(LessonStatus.GENERATED.value, 0)
    failed = counts.get(LessonStatus.FAILED.value, 0)
    return LessonStats(total=generating + generated + failed, generating=generating, generated=generated, failed=failed)

  async def fail_stuck_lessons(self, *, older_than: datetime.datetime, error_message: str) -> int:
    """Fail lessons whose background run never reached a terminal state."""
    async with self._session_factory() as session:
      stmt = (
        update(Lesson)
        .where(Lesson.status == LessonStatus.GENERATING.value, Lesson.created_at < older_than)
        .values(status=LessonStatus.FAILED.value, error_message=cap_error_message(error_message), updated_at=func.now())
      )
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def delete_failed_lessons(self, *, older_than: datetime.datetime) -> int:
    async with self._session_factory() as session:
      stmt = delete(Lesson).where(Lesson.status == LessonStatus.FAILED.value, Lesson.updated_at < older_than)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  def _model_to_record(self, lesson: Lesson) -> LessonRecord:
    """Convert a SQLAlchemy model to a domain record."""
    return LessonRecord(
      lesson_id=lesson.lesson_id,
      title=lesson.title,
      outline=lesson.outline,
      status=lesson.status,
      created_at=lesson.created_at,
      updated_at=lesson.updated_at,
      generated_content=lesson.generated_content,
      error_message=lesson.error_message,
    )
