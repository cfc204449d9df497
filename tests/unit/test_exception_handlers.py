"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from app.ai.errors import AdmissionRejected, CompilationFailed, QuotaExceeded, TimeoutExceeded
from app.core.exceptions import _error_payload, _sanitize_http_detail, _sanitize_validation_errors, pipeline_status_code


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "outline"), "msg": "Value error, Outline must be text.", "input": {"outline": 42}, "ctx": {"error": ValueError("Outline must be text."), "input": {"outline": 42}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: Outline must be text."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "outline"]


def test_sanitize_http_detail_drops_user_content() -> None:
  detail = {"error": "Lesson is not ready", "outline": "secret outline", "code": "export default function A() {}", "nested": [{"content": "x", "status": "failed"}]}
  assert _sanitize_http_detail(detail) == {"error": "Lesson is not ready", "nested": [{"status": "failed"}]}


def test_error_payload_shape() -> None:
  assert _error_payload("Lesson not found", request_id="req-1") == {"detail": "Lesson not found", "error": "Lesson not found", "requestId": "req-1"}
  assert _error_payload([{"msg": "bad"}], error="Invalid request") == {"detail": [{"msg": "bad"}], "error": "Invalid request"}


def test_pipeline_status_codes() -> None:
  assert pipeline_status_code(AdmissionRejected("nope", stage="spam")) == 400
  assert pipeline_status_code(QuotaExceeded("slow down", retry_after_seconds=10)) == 429
  assert pipeline_status_code(CompilationFailed("too big", status_code=413)) == 413
  assert pipeline_status_code(TimeoutExceeded(600)) == 500
