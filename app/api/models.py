from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from app.storage.lessons_repo import LessonRecord, LessonStats

LessonStatusName = Literal["generating", "generated", "failed"]


class GenerateLessonRequest(BaseModel):
  """Request payload for lesson generation; admission rules are applied by the route."""

  outline: StrictStr = Field(description="Free-form description of the lesson to build.", examples=["Explain photosynthesis with an interactive diagram"])
  model_config = ConfigDict(extra="forbid")


class CompileRequest(BaseModel):
  """Lesson source to compile; size limits are enforced by the compiler."""

  code: StrictStr
  model_config = ConfigDict(extra="forbid")


class LessonResponse(BaseModel):
  """Public view of a persisted lesson."""

  id: str
  title: str
  outline: str
  status: LessonStatusName
  generated_content: str | None = None
  error_message: str | None = None
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @classmethod
  def from_record(cls, record: LessonRecord) -> LessonResponse:
    return cls(
      id=record.lesson_id,
      title=record.title,
      outline=record.outline,
      status=record.status,
      generated_content=record.generated_content,
      error_message=record.error_message,
      created_at=record.created_at,
      updated_at=record.updated_at,
    )


class GenerateLessonResponse(BaseModel):
  lesson: LessonResponse


class CompileResponse(BaseModel):
  success: bool = True
  compiled_code: str = Field(serialization_alias="compiledCode")
  warnings: list[str] = Field(default_factory=list)
  model_config = ConfigDict(populate_by_name=True)


class PaginationMeta(BaseModel):
  page: int
  limit: int
  total: int
  total_pages: int
  has_next: bool
  has_prev: bool


class LessonListResponse(BaseModel):
  lessons: list[LessonResponse]
  pagination: PaginationMeta


class LessonStatsResponse(BaseModel):
  total: int
  generating: int
  generated: int
  failed: int

  @classmethod
  def from_stats(cls, stats: LessonStats) -> LessonStatsResponse:
    return cls(total=stats.total, generating=stats.generating, generated=stats.generated, failed=stats.failed)


class LessonStatusResponse(BaseModel):
  exists: bool
  status: LessonStatusName | None = None
  error_message: str | None = None
