from __future__ import annotations

import datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class LessonStatus(str, PyEnum):
  GENERATING = "generating"
  GENERATED = "generated"
  FAILED = "failed"


class Lesson(Base):
  __tablename__ = "lessons"
  __table_args__ = (
    CheckConstraint("status IN ('generating', 'generated', 'failed')", name="ck_lessons_status"),
    CheckConstraint("(status = 'generated') = (generated_content IS NOT NULL)", name="ck_lessons_content_iff_generated"),
    CheckConstraint("(status = 'failed') = (error_message IS NOT NULL)", name="ck_lessons_error_iff_failed"),
    Index("ix_lessons_status_created_at", "status", "created_at"),
  )

  lesson_id: Mapped[str] = mapped_column(String, primary_key=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  outline: Mapped[str] = mapped_column(Text, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default=LessonStatus.GENERATING.value)
  generated_content: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
