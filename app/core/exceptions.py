import logging
from typing import Any

from app.ai.errors import AdmissionRejected, CompilationFailed, LessonPipelineError, QuotaExceeded
from app.core.json import LessonJSONResponse
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, error: str | None = None, request_id: str | None = None) -> dict[str, Any]:
  """Build the `{detail, error, requestId}` body shared by every error response."""
  payload: dict[str, Any] = {"detail": detail, "error": error if error is not None else (detail if isinstance(detail, str) else "Request failed")}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _sanitize_http_detail(detail: Any) -> Any:
  """Return an HTTPException detail payload safe for logs."""
  if isinstance(detail, dict):
    return {key: _sanitize_http_detail(value) for key, value in detail.items() if key not in {"input", "body", "payload", "content", "code", "outline"}}
  if isinstance(detail, list):
    return [_sanitize_http_detail(item) for item in detail]
  return detail


def pipeline_status_code(exc: LessonPipelineError) -> int:
  """Map a pipeline failure to the HTTP status returned to callers."""
  if isinstance(exc, AdmissionRejected):
    return status.HTTP_400_BAD_REQUEST
  if isinstance(exc, QuotaExceeded):
    return status.HTTP_429_TOO_MANY_REQUESTS
  if isinstance(exc, CompilationFailed):
    return exc.status_code
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def global_exception_handler(request: Request, exc: Exception) -> LessonJSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return LessonJSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> LessonJSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return LessonJSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, error="Invalid request", request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> LessonJSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from app.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  headers = dict(exc.headers) if exc.headers else None
  # Log 5xx HTTPExceptions with a traceback; never expose `exc.detail` to callers.
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return LessonJSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id), headers=headers)

  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, _sanitize_http_detail(exc.detail))

  # Structured details (duplicate lesson ids, admission suggestions) are merged into the body.
  if isinstance(exc.detail, dict):
    message = str(exc.detail.get("error") or "Request failed")
    payload = _error_payload(message, error=message, request_id=request_id)
    payload.update({key: value for key, value in exc.detail.items() if key not in {"detail", "error"}})
    return LessonJSONResponse(status_code=exc.status_code, content=payload, headers=headers)

  return LessonJSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=headers)


async def pipeline_exception_handler(request: Request, exc: LessonPipelineError) -> LessonJSONResponse:
  """Return a structured failure response for pipeline errors raised inside a request."""
  request_id = getattr(request.state, "request_id", None)
  status_code = pipeline_status_code(exc)
  logger = logging.getLogger("uvicorn.error")
  if status_code >= 500:
    logger.error("Pipeline failure request_id=%s path=%s kind=%s message=%s", request_id, request.url.path, exc.kind.value, exc.message)
  else:
    logger.info("Pipeline rejection request_id=%s path=%s kind=%s", request_id, request.url.path, exc.kind.value)

  payload = _error_payload(exc.message, request_id=request_id)
  payload["kind"] = exc.kind.value
  headers: dict[str, str] | None = None
  if isinstance(exc, AdmissionRejected):
    payload["stage"] = exc.stage
    if exc.suggestion:
      payload["suggestion"] = exc.suggestion
  if isinstance(exc, QuotaExceeded):
    payload["error"] = "Rate limit exceeded"
    payload["retryAfter"] = exc.retry_after_seconds
    headers = {**exc.headers, "Retry-After": str(exc.retry_after_seconds)}

  return LessonJSONResponse(status_code=status_code, content=payload, headers=headers)
