"""Shared FastAPI dependencies for storage, orchestration and quota enforcement."""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, Response, status

from app.ai.errors import QuotaExceeded
from app.ai.orchestrator import RepairOrchestrator
from app.config import Settings, get_settings
from app.sandbox.executor import SandboxExecutor
from app.services.quotas import QuotaDecision, QuotaGuard, client_key_from_headers, format_retry_after
from app.storage.factory import _get_repo
from app.storage.lessons_repo import LessonsRepository

logger = logging.getLogger(__name__)


def get_lessons_repo(settings: Settings = Depends(get_settings)) -> LessonsRepository:  # noqa: B008
  """Resolve the lessons repository, reporting a missing database as 503."""
  try:
    return _get_repo(settings)
  except RuntimeError as exc:
    logger.error("Lessons repository unavailable: %s", exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Lesson storage is not available") from exc


def get_orchestrator(settings: Settings = Depends(get_settings)) -> RepairOrchestrator:  # noqa: B008
  """Build the orchestrator for the configured provider."""
  try:
    return RepairOrchestrator.from_settings(settings)
  except ValueError as exc:
    logger.error("Generation model unavailable: %s", exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Lesson generation is not available") from exc


def get_sandbox_executor(settings: Settings = Depends(get_settings)) -> SandboxExecutor:  # noqa: B008
  return SandboxExecutor.from_settings(settings)


def _enforce_quota(request: Request, response: Response, guard: QuotaGuard, *, window_ms: int, max_requests: int) -> QuotaDecision:
  client_key = client_key_from_headers(request.headers, request.client.host if request.client else None)
  decision = guard.admit(client_key, window_ms, max_requests)
  if not decision.allowed:
    message = f"Too many requests. Maximum {max_requests} requests per minute. Try again in {format_retry_after(decision.retry_after_seconds)}."
    raise QuotaExceeded(message, retry_after_seconds=decision.retry_after_seconds, limit=max_requests, headers=decision.headers())

  response.headers.update(decision.headers())
  return decision


def enforce_generation_quota(request: Request, response: Response, settings: Settings = Depends(get_settings)) -> QuotaDecision:  # noqa: B008
  """Admit one generation request against the per-client window."""
  guard: QuotaGuard = request.app.state.generation_quota
  return _enforce_quota(request, response, guard, window_ms=settings.generation_rate_window_ms, max_requests=settings.generation_rate_limit)


def enforce_compile_quota(request: Request, response: Response, settings: Settings = Depends(get_settings)) -> QuotaDecision:  # noqa: B008
  """Admit one compilation request against the per-client window."""
  guard: QuotaGuard = request.app.state.compile_quota
  return _enforce_quota(request, response, guard, window_ms=settings.compile_rate_window_ms, max_requests=settings.compile_rate_limit)
