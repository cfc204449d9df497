"""Bounded generate/validate/repair loop for lesson components.

How/Why:
  - The first call writes a draft; every later call repairs the previous draft with
    its exact violation list. The attempt counter is loop state, so the ceiling on
    model calls is explicit.
  - A model call that raises still consumes an attempt. The next attempt repairs
    the last draft when there is one, otherwise it writes a fresh draft.
  - Accepted code is validated once more before success is reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from app.ai.agents.code_writer import CodeWriterAgent
from app.ai.agents.prompts import FALLBACK_TITLE, truncate_title
from app.ai.agents.repairer import RepairerAgent
from app.ai.agents.titler import TitleAgent
from app.ai.errors import TransportFailure, ValidationRejected, is_provider_error
from app.ai.pipeline.contracts import DraftResult, GenerationRequest, RepairInput
from app.ai.router import get_model_for_mode
from app.config import Settings
from app.validation.validator import StaticValidator, ValidationVerdict

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class OrchestrationResult:
  """Output from the orchestration layer."""

  code: str
  title: str
  attempts: int
  usage: list[dict[str, int]] = field(default_factory=list)

  @property
  def total_tokens(self) -> int:
    """Tokens spent across the writer and repairer calls that returned usage."""
    return sum(entry.get("total_tokens", 0) for entry in self.usage)


class RepairOrchestrator:
  """Coordinates the writer, repairer and title agents around the static validator."""

  def __init__(self, *, writer: CodeWriterAgent, repairer: RepairerAgent, titler: TitleAgent | None = None, validator: StaticValidator | None = None, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
    if max_attempts < 1:
      raise ValueError("max_attempts must be at least 1.")
    self._writer = writer
    self._repairer = repairer
    self._titler = titler
    self._validator = validator or StaticValidator()
    self._max_attempts = max_attempts

  @classmethod
  def from_settings(cls, settings: Settings) -> RepairOrchestrator:
    """Build an orchestrator wired to the configured provider."""
    provider = settings.model_provider
    code_model = get_model_for_mode(provider, settings, settings.generation_model)
    title_model = code_model if settings.title_model == settings.generation_model else get_model_for_mode(provider, settings, settings.title_model)
    return cls(
      writer=CodeWriterAgent(model=code_model, prov=provider),
      repairer=RepairerAgent(model=code_model, prov=provider),
      titler=TitleAgent(model=title_model, prov=provider),
      max_attempts=settings.max_generation_attempts,
    )

  @property
  def max_attempts(self) -> int:
    return self._max_attempts

  async def generate_lesson(self, request: GenerationRequest) -> OrchestrationResult:
    """Run the loop for one lesson and return accepted code with its title."""
    usage: list[dict[str, int]] = []
    draft: str | None = None
    verdict: ValidationVerdict | None = None
    last_error: Exception | None = None
    attempt = request.attempt

    while attempt < self._max_attempts:
      try:
        result = await self._next_draft(request, attempt, draft, verdict)
      except Exception as exc:  # noqa: BLE001
        attempt += 1
        last_error = exc
        logger.warning("Model call failed lesson_id=%s attempt=%d/%d provider_error=%s: %s", request.lesson_id, attempt, self._max_attempts, is_provider_error(exc), exc)
        continue

      attempt += 1
      last_error = None
      draft = result.code
      if result.usage:
        usage.append(dict(result.usage))

      verdict = self._validator.validate(draft)
      if verdict.is_valid:
        logger.info("Lesson code accepted lesson_id=%s attempts=%d", request.lesson_id, attempt)
        break

      logger.warning("Validation failed lesson_id=%s attempt=%d/%d violations=%s", request.lesson_id, attempt, self._max_attempts, list(verdict.violations))

    if last_error is not None:
      message = last_error.message if isinstance(last_error, TransportFailure) else str(last_error) or type(last_error).__name__
      raise TransportFailure(message) from last_error

    if draft is None or verdict is None:
      raise TransportFailure("No generation attempts were made")

    if not verdict.is_valid:
      raise ValidationRejected(verdict.violations, attempts=attempt)

    # Accepted already implies zero violations; a mismatch here is a bug in the loop.
    final = self._validator.validate(draft)
    if not final.is_valid:
      logger.error("Accepted code failed re-validation lesson_id=%s violations=%s", request.lesson_id, list(final.violations))
      raise ValidationRejected(final.violations, attempts=attempt)

    title = await self._extract_title(request)
    return OrchestrationResult(code=draft, title=title, attempts=attempt, usage=usage)

  async def _next_draft(self, request: GenerationRequest, attempt: int, draft: str | None, verdict: ValidationVerdict | None) -> DraftResult:
    if draft is None or verdict is None:
      return await self._writer.run(request.model_copy(update={"attempt": attempt}))
    return await self._repairer.run(RepairInput(outline=request.outline, code=draft, violations=verdict.violations))

  async def _extract_title(self, request: GenerationRequest) -> str:
    """Ask the title agent for a title and fall back to the outline itself."""
    if self._titler is not None:
      try:
        return await self._titler.run(request.outline)
      except Exception as exc:  # noqa: BLE001
        logger.warning("Title extraction failed lesson_id=%s: %s", request.lesson_id, exc)

    return truncate_title(request.outline) or FALLBACK_TITLE
