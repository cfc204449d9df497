"""Shared data contracts for the lesson code pipeline."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
  """One logical unit of generation work bound to a persisted lesson."""

  model_config = ConfigDict(frozen=True)

  lesson_id: str
  outline: str = Field(min_length=1)
  attempt: int = Field(default=0, ge=0)


class RepairInput(BaseModel):
  """A rejected draft plus the exact violations the validator reported for it."""

  model_config = ConfigDict(frozen=True)

  outline: str
  code: str
  violations: tuple[str, ...]


class DraftResult(BaseModel):
  """Cleaned source returned by a writer or repairer call."""

  code: str
  usage: dict[str, int] | None = None
