"""Background lesson generation with a guaranteed terminal write."""

from __future__ import annotations

import asyncio
import logging
import time

from app.ai.errors import LessonPipelineError, TimeoutExceeded
from app.ai.orchestrator import RepairOrchestrator
from app.ai.pipeline.contracts import GenerationRequest
from app.storage.lessons_repo import LessonsRepository

logger = logging.getLogger(__name__)

MIN_GENERATED_CHARS = 100
UNEXPECTED_FAILURE = "Unexpected error during generation"


def check_generated_structure(code: str) -> str | None:
  """Return a failure message when accepted code still lacks a usable component shape."""
  if len(code) < MIN_GENERATED_CHARS:
    return "Generated code is too short to be valid"
  if "export default function" not in code or "return" not in code:
    return "Generated code missing required React component structure"
  return None


async def run_lesson_generation(request: GenerationRequest, *, repo: LessonsRepository, orchestrator: RepairOrchestrator, timeout_seconds: float) -> str:
  """Generate, validate and persist one lesson; returns the terminal status written.

  How/Why:
    - The whole orchestration runs under one wall-clock timeout; on expiry the
      in-flight model call is cancelled and the lesson is failed immediately.
    - Every exit path writes exactly one terminal state through the conditional
      repository update, so a lesson never stays `generating` because of this task.
  """
  start = time.monotonic()
  logger.info("Starting generation lesson_id=%s outline_chars=%d", request.lesson_id, len(request.outline))

  try:
    async with asyncio.timeout(timeout_seconds):
      result = await orchestrator.generate_lesson(request)
  except TimeoutError:
    failure = TimeoutExceeded(int(timeout_seconds))
    logger.error("Generation timed out lesson_id=%s after %.1fs", request.lesson_id, time.monotonic() - start)
    await repo.mark_failed(request.lesson_id, error_message=failure.message)
    return "failed"
  except LessonPipelineError as exc:
    logger.warning("Generation failed lesson_id=%s kind=%s", request.lesson_id, exc.kind.value)
    await repo.mark_failed(request.lesson_id, error_message=exc.message)
    return "failed"
  except Exception as exc:  # noqa: BLE001
    logger.error("Unexpected generation error lesson_id=%s", request.lesson_id, exc_info=True)
    await repo.mark_failed(request.lesson_id, error_message=str(exc) or UNEXPECTED_FAILURE)
    return "failed"

  structure_error = check_generated_structure(result.code)
  if structure_error:
    logger.error("Accepted code rejected lesson_id=%s: %s", request.lesson_id, structure_error)
    await repo.mark_failed(request.lesson_id, error_message=structure_error)
    return "failed"

  await repo.mark_generated(request.lesson_id, title=result.title, generated_content=result.code)
  logger.info("Generation completed lesson_id=%s attempts=%d tokens=%d duration=%.2fs", request.lesson_id, result.attempts, result.total_tokens, time.monotonic() - start)
  return "generated"


async def run_lesson_generation_safely(request: GenerationRequest, *, repo: LessonsRepository, orchestrator: RepairOrchestrator, timeout_seconds: float) -> None:
  """Background-task wrapper that logs persistence failures instead of crashing the worker."""
  try:
    await run_lesson_generation(request, repo=repo, orchestrator=orchestrator, timeout_seconds=timeout_seconds)
  except Exception:  # noqa: BLE001
    # The maintenance sweep fails lessons left generating when the terminal write itself breaks.
    logger.error("Terminal write failed lesson_id=%s", request.lesson_id, exc_info=True)
