from __future__ import annotations

import datetime
import logging
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from app.ai.errors import AdmissionRejected
from app.ai.orchestrator import RepairOrchestrator
from app.ai.pipeline.contracts import GenerationRequest
from app.api.deps import enforce_compile_quota, enforce_generation_quota, get_lessons_repo, get_orchestrator, get_sandbox_executor
from app.api.models import GenerateLessonRequest, GenerateLessonResponse, LessonListResponse, LessonResponse, LessonStatsResponse, LessonStatusResponse, PaginationMeta
from app.compiler.service import compile_source
from app.config import Settings, get_settings
from app.sandbox.executor import SandboxExecutor
from app.services import admission
from app.services.generation import run_lesson_generation_safely
from app.services.quotas import QuotaDecision
from app.storage.lessons_repo import LessonsRepository
from app.utils.ids import generate_lesson_id

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_DUPLICATE_MESSAGES = {
  "generating": "A similar lesson is already being generated. Please wait for it to complete.",
  "generated": "This lesson was recently generated. Check your lesson list.",
}


@router.post("/generate", response_model=GenerateLessonResponse)
async def generate_lesson(
  payload: GenerateLessonRequest,
  background_tasks: BackgroundTasks,
  _quota: QuotaDecision = Depends(enforce_generation_quota),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  repo: LessonsRepository = Depends(get_lessons_repo),  # noqa: B008
  orchestrator: RepairOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> GenerateLessonResponse:
  """Admit an outline, create a generating lesson, and schedule the background run."""
  outline = payload.outline.strip()
  if not outline:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Lesson outline is required")

  verdict = admission.check(outline)
  if not verdict.is_valid:
    raise AdmissionRejected(verdict.error or "Invalid prompt", stage=verdict.stage or "unknown", suggestion=admission.prompt_suggestion(outline))

  # Identical outlines inside the window point the caller at the existing lesson.
  since = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(seconds=settings.duplicate_window_seconds)
  existing = await repo.find_recent_duplicate(outline, since=since)
  if existing is not None:
    logger.info("Duplicate generation request existing_lesson_id=%s status=%s", existing.lesson_id, existing.status)
    detail = {"error": _DUPLICATE_MESSAGES.get(existing.status, _DUPLICATE_MESSAGES["generating"]), "existing_lesson_id": existing.lesson_id}
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

  record = await repo.create_lesson(lesson_id=generate_lesson_id(), outline=outline)
  request = GenerationRequest(lesson_id=record.lesson_id, outline=outline)
  background_tasks.add_task(run_lesson_generation_safely, request, repo=repo, orchestrator=orchestrator, timeout_seconds=settings.generation_timeout_seconds)
  logger.info("Lesson queued lesson_id=%s outline_chars=%d", record.lesson_id, len(outline))
  return GenerateLessonResponse(lesson=LessonResponse.from_record(record))


@router.get("", response_model=LessonListResponse)
async def list_lessons(
  page: int = Query(default=1, ge=1),  # noqa: B008
  limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),  # noqa: B008
  status_filter: Literal["generating", "generated", "failed"] | None = Query(default=None, alias="status"),  # noqa: B008
  sort_by: Literal["created_at", "updated_at"] = Query(default="created_at"),  # noqa: B008
  sort_order: Literal["asc", "desc"] = Query(default="desc"),  # noqa: B008
  repo: LessonsRepository = Depends(get_lessons_repo),  # noqa: B008
) -> LessonListResponse:
  """Return a page of lessons with pagination metadata."""
  result = await repo.list_lessons(page=page, limit=limit, status=status_filter, sort_by=sort_by, sort_order=sort_order)
  pagination = PaginationMeta(page=page, limit=limit, total=result.total, total_pages=result.total_pages, has_next=page < result.total_pages, has_prev=page > 1)
  return LessonListResponse(lessons=[LessonResponse.from_record(record) for record in result.items], pagination=pagination)


@router.get("/stats", response_model=LessonStatsResponse)
async def lesson_stats(repo: LessonsRepository = Depends(get_lessons_repo)) -> LessonStatsResponse:  # noqa: B008
  return LessonStatsResponse.from_stats(await repo.get_stats())


@router.get("/{lesson_id}", response_model=LessonResponse)
async def get_lesson(lesson_id: str, repo: LessonsRepository = Depends(get_lessons_repo)) -> LessonResponse:  # noqa: B008
  record = await repo.get_lesson(lesson_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
  return LessonResponse.from_record(record)


@router.get("/{lesson_id}/status", response_model=LessonStatusResponse)
async def get_lesson_status(lesson_id: str, repo: LessonsRepository = Depends(get_lessons_repo)) -> LessonStatusResponse:  # noqa: B008
  """Existence and status probe used by polling clients."""
  record = await repo.get_lesson(lesson_id)
  if record is None:
    return LessonStatusResponse(exists=False)
  return LessonStatusResponse(exists=True, status=record.status, error_message=record.error_message)


@router.get("/{lesson_id}/sandbox", response_class=HTMLResponse)
async def get_lesson_sandbox(
  lesson_id: str,
  _quota: QuotaDecision = Depends(enforce_compile_quota),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  repo: LessonsRepository = Depends(get_lessons_repo),  # noqa: B008
  executor: SandboxExecutor = Depends(get_sandbox_executor),  # noqa: B008
) -> HTMLResponse:
  """Compile a generated lesson and serve it as an isolated document for an iframe.

  Each view compiles afresh, so it draws on the same per-client window as `/compile`.
  """
  record = await repo.get_lesson(lesson_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
  if record.status != "generated" or not record.generated_content:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"error": f"Lesson is not ready (status: {record.status})", "status": record.status})

  compiled = await run_in_threadpool(compile_source, record.generated_content, max_chars=settings.compile_max_chars, min_chars=settings.compile_min_chars)
  document = executor.build(compiled.code, title=record.title)
  return HTMLResponse(content=document.html, headers=document.headers())
