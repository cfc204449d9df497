from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.ai.errors import LessonPipelineError
from app.api.routes import compilation, lessons
from app.config import get_settings
from app.core.exceptions import global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from app.core.json import LessonJSONResponse
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.services.quotas import QuotaGuard

__version__ = "0.1.0"

settings = get_settings()

app = FastAPI(title="LessonForge Engine", version=__version__, default_response_class=LessonJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url="/openapi.json" if settings.debug else None)

# Quota windows live for the lifetime of this app instance.
app.state.generation_quota = QuotaGuard(name="generation", cleanup_probability=settings.quota_cleanup_probability)
app.state.compile_quota = QuotaGuard(name="compile", cleanup_probability=settings.quota_cleanup_probability)

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.allowed_origins,
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type"],
  expose_headers=["content-length", "x-request-id", "x-ratelimit-limit", "x-ratelimit-remaining", "x-ratelimit-reset", "retry-after"],
)


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(LessonPipelineError, pipeline_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(lessons.router, prefix="/v1/lessons", tags=["lessons"])
app.include_router(compilation.router, prefix="/v1", tags=["compile"])
