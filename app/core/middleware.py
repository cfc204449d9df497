import logging
import time
from typing import Any

from app.utils.ids import generate_request_id
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("app.core.middleware")


def _normalize_headers(scope: Scope) -> dict[str, str]:
  """Normalize scope headers into a case-insensitive mapping for logging decisions."""
  return {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in scope.get("headers", [])}


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without relying on Request bodies."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


class RequestLoggingMiddleware:
  """Log request/response metadata and tag every exchange with a request id.

  Bodies are never read here; lesson outlines and source code stay out of the logs.
  """

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    # Skip non-HTTP scopes to avoid interfering with websocket or lifespan events.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    # Store the request id for downstream handlers and exception logging.
    request_id = generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)
    headers = _normalize_headers(scope)
    content_type = headers.get("content-type")
    content_length = headers.get("content-length")
    if content_type or content_length:
      logger.debug("Request metadata request_id=%s content-type=%s content-length=%s", request_id, content_type, content_length)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    await self.app(scope, receive, send_wrapper)

    process_time = (time.time() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Strip server fingerprint headers and set conservative defaults on every response."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        if "x-powered-by" in headers:
          del headers["x-powered-by"]
        if "server" in headers:
          del headers["server"]
        if "x-content-type-options" not in headers:
          headers["x-content-type-options"] = "nosniff"

      await send(message)

    await self.app(scope, receive, send_wrapper)
