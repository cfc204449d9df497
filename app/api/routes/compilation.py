from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from app.api.deps import enforce_compile_quota
from app.api.models import CompileRequest, CompileResponse
from app.compiler.service import compile_source
from app.config import Settings, get_settings
from app.services.quotas import QuotaDecision

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/compile", response_model=CompileResponse)
async def compile_lesson(payload: CompileRequest, _quota: QuotaDecision = Depends(enforce_compile_quota), settings: Settings = Depends(get_settings)) -> CompileResponse:  # noqa: B008
  """Compile lesson source into a script the sandbox can run."""
  # Parsing and emitting are CPU bound; keep them off the event loop.
  result = await run_in_threadpool(compile_source, payload.code, max_chars=settings.compile_max_chars, min_chars=settings.compile_min_chars)
  logger.info("Compiled lesson source chars=%d output_chars=%d warnings=%d", len(payload.code), len(result.code), len(result.diagnostics))
  return CompileResponse(compiled_code=result.code, warnings=list(result.diagnostics))
