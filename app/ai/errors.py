"""Error taxonomy for the lesson pipeline and provider error classification."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum


class ErrorKind(str, Enum):
  """Stable error categories surfaced to API callers and persisted on failed lessons."""

  ADMISSION_REJECTED = "admission_rejected"
  QUOTA_EXCEEDED = "quota_exceeded"
  VALIDATION_REJECTED = "validation_rejected"
  COMPILATION_FAILED = "compilation_failed"
  TIMEOUT_EXCEEDED = "timeout_exceeded"
  TRANSPORT_FAILURE = "transport_failure"


class LessonPipelineError(Exception):
  """Base class for every failure the generate/validate/compile pipeline reports."""

  kind: ErrorKind

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class AdmissionRejected(LessonPipelineError):
  """Request text failed admission control."""

  kind = ErrorKind.ADMISSION_REJECTED

  def __init__(self, message: str, *, stage: str, suggestion: str | None = None) -> None:
    super().__init__(message)
    self.stage = stage
    self.suggestion = suggestion


class QuotaExceeded(LessonPipelineError):
  """Client exceeded its request window."""

  kind = ErrorKind.QUOTA_EXCEEDED

  def __init__(self, message: str, *, retry_after_seconds: int, limit: int | None = None, headers: dict[str, str] | None = None) -> None:
    super().__init__(message)
    self.retry_after_seconds = retry_after_seconds
    self.limit = limit
    self.headers = dict(headers or {})


class ValidationRejected(LessonPipelineError):
  """Generated code never satisfied the static validator."""

  kind = ErrorKind.VALIDATION_REJECTED

  def __init__(self, violations: Sequence[str], *, attempts: int) -> None:
    self.violations = tuple(violations)
    self.attempts = attempts
    super().__init__(format_validation_failure(self.violations, attempts))


class CompilationFailed(LessonPipelineError):
  """Source could not be turned into safe executable code."""

  kind = ErrorKind.COMPILATION_FAILED

  def __init__(self, message: str, *, status_code: int) -> None:
    super().__init__(message)
    self.status_code = status_code


class TimeoutExceeded(LessonPipelineError):
  """The whole generation run exceeded its time budget."""

  kind = ErrorKind.TIMEOUT_EXCEEDED

  def __init__(self, timeout_seconds: int) -> None:
    minutes = max(1, timeout_seconds // 60)
    super().__init__(f"Generation timeout after {minutes} minutes")
    self.timeout_seconds = timeout_seconds


class TransportFailure(LessonPipelineError):
  """The model provider could not be reached or returned nothing usable."""

  kind = ErrorKind.TRANSPORT_FAILURE


def format_validation_failure(violations: Sequence[str], attempts: int) -> str:
  """Render the failure message stored on lessons rejected by the validator."""
  numbered = "\n".join(f"{index}. {violation}" for index, violation in enumerate(violations, start=1))
  return f"Code validation failed after {attempts} attempts.\n\nValidation Errors:\n{numbered}\n\nPlease try again with a clearer prompt."


_QUOTA_HINTS: tuple[str, ...] = (
  "resource exhausted",
  "resource_exhausted",
  "quota exceeded",
  "429",
  "too many requests",
  "rate limit",
)

_PROVIDER_HINTS: tuple[str, ...] = (
  "unsupported model",
  "model not found",
  "no such model",
  "model is not available",
  "timeout",
  "timed out",
  "connection",
  "network",
  "api key",
  "unauthorized",
  "forbidden",
  "service unavailable",
  "bad gateway",
  "gateway",
  "openrouter",
  "gemini",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  for hint in hints:
    if hint in message:
      return True
  return False


def is_quota_error(exc: Exception) -> bool:
  """Return True when a provider error signals throttling that is worth waiting out."""
  return _match_hint(str(exc).lower(), _QUOTA_HINTS)


def is_provider_error(exc: Exception) -> bool:
  """Return True when an exception indicates a provider or model availability failure."""
  message = str(exc).lower()
  return _match_hint(message, _PROVIDER_HINTS) or _match_hint(message, _QUOTA_HINTS)
