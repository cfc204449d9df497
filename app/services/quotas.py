"""Per-client request windows for the generation and compilation endpoints."""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _now_ms() -> float:
  return time.time() * 1000


@dataclass
class QuotaWindow:
  """Request count for one client key until `reset_at` (epoch milliseconds)."""

  count: int
  reset_at: float


@dataclass(frozen=True)
class QuotaDecision:
  """Result of admitting one request against a window."""

  allowed: bool
  limit: int
  remaining: int
  reset_at: float
  now: float

  @property
  def retry_after_seconds(self) -> int:
    return max(0, math.ceil((self.reset_at - self.now) / 1000))

  def headers(self) -> dict[str, str]:
    """Rate-limit headers attached to both admitted and throttled responses."""
    headers = {"X-RateLimit-Limit": str(self.limit), "X-RateLimit-Remaining": str(self.remaining), "X-RateLimit-Reset": str(int(self.reset_at))}
    if not self.allowed:
      headers["Retry-After"] = str(self.retry_after_seconds)
    return headers


class QuotaGuard:
  """Fixed-window-per-key admission counter held in process memory.

  How/Why:
    - A window is created lazily and replaced once `now` passes `reset_at`.
    - Read, reset and increment happen under one lock so concurrent requests
      never admit more than `max_requests` per window.
    - Expired windows are purged opportunistically instead of by a timer.
  """

  def __init__(self, *, name: str, cleanup_probability: float = 0.01, clock: Callable[[], float] = _now_ms, rng: Callable[[], float] = random.random) -> None:
    self.name = name
    self._cleanup_probability = cleanup_probability
    self._clock = clock
    self._rng = rng
    self._windows: dict[str, QuotaWindow] = {}
    self._lock = threading.Lock()

  def admit(self, client_key: str, window_ms: int, max_requests: int) -> QuotaDecision:
    """Count one request for `client_key` and decide whether it may proceed."""
    if window_ms <= 0 or max_requests <= 0:
      raise ValueError("window_ms and max_requests must be positive.")

    with self._lock:
      now = self._clock()
      window = self._windows.get(client_key)
      if window is None or now > window.reset_at:
        window = QuotaWindow(count=0, reset_at=now + window_ms)
        self._windows[client_key] = window

      window.count += 1
      decision = QuotaDecision(allowed=window.count <= max_requests, limit=max_requests, remaining=max(0, max_requests - window.count), reset_at=window.reset_at, now=now)

      if self._rng() < self._cleanup_probability:
        self._purge_expired(now)

    if not decision.allowed:
      logger.info("Quota %s exceeded for client=%s retry_after=%ss", self.name, client_key, decision.retry_after_seconds)
    return decision

  def _purge_expired(self, now: float) -> None:
    expired = [key for key, window in self._windows.items() if now > window.reset_at]
    for key in expired:
      del self._windows[key]
    if expired:
      logger.debug("Quota %s purged %d expired windows", self.name, len(expired))

  def __len__(self) -> int:
    with self._lock:
      return len(self._windows)


def client_key_from_headers(headers: Mapping[str, str], peer_host: str | None) -> str:
  """Derive the client key: first forwarded hop, then real-ip, then the socket peer."""
  forwarded = headers.get("x-forwarded-for")
  if forwarded:
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
      return first_hop

  real_ip = (headers.get("x-real-ip") or "").strip()
  if real_ip:
    return real_ip

  return peer_host or "127.0.0.1"


def format_retry_after(seconds: int) -> str:
  """Render a retry delay for end users."""
  if seconds < 60:
    return f"{seconds} second{'s' if seconds != 1 else ''}"
  minutes = math.ceil(seconds / 60)
  return f"{minutes} minute{'s' if minutes != 1 else ''}"
