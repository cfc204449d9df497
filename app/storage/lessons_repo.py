"""Storage interfaces and records for lesson persistence."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal, Protocol

SortField = Literal["created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]

GENERATING_TITLE = "Generating..."
MAX_ERROR_MESSAGE_CHARS = 4000


@dataclass(frozen=True)
class LessonRecord:
  """Record stored in the lessons repository."""

  lesson_id: str
  title: str
  outline: str
  status: str
  created_at: datetime.datetime
  updated_at: datetime.datetime
  generated_content: str | None = None
  error_message: str | None = None


@dataclass(frozen=True)
class LessonPage:
  """One page of lessons plus the unpaginated total."""

  items: list[LessonRecord]
  total: int
  page: int
  limit: int

  @property
  def total_pages(self) -> int:
    return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class LessonStats:
  total: int
  generating: int
  generated: int
  failed: int


def cap_error_message(message: str) -> str:
  """Keep persisted failure text bounded and never empty."""
  text = (message or "").strip() or "Lesson generation failed"
  if len(text) <= MAX_ERROR_MESSAGE_CHARS:
    return text
  return text[: MAX_ERROR_MESSAGE_CHARS - 3] + "..."


class LessonsRepository(Protocol):
  """Repository for lesson records.

  Terminal writes are conditional on the row still being `generating`; they return
  False when another writer already finished the lesson.
  """

  async def create_lesson(self, *, lesson_id: str, outline: str, title: str = GENERATING_TITLE) -> LessonRecord:
    ...

  async def get_lesson(self, lesson_id: str) -> LessonRecord | None:
    ...

  async def find_recent_duplicate(self, outline: str, *, since: datetime.datetime) -> LessonRecord | None:
    ...

  async def mark_generated(self, lesson_id: str, *, title: str, generated_content: str) -> bool:
    ...

  async def mark_failed(self, lesson_id: str, *, error_message: str) -> bool:
    ...

  async def list_lessons(self, *, page: int, limit: int, status: str | None = None, sort_by: SortField = "created_at", sort_order: SortOrder = "desc") -> LessonPage:
    ...

  async def get_stats(self) -> LessonStats:
    ...

  async def fail_stuck_lessons(self, *, older_than: datetime.datetime, error_message: str) -> int:
    ...

  async def delete_failed_lessons(self, *, older_than: datetime.datetime) -> int:
    ...
