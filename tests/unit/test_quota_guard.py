"""Unit tests for per-client quota windows."""

from __future__ import annotations

import pytest
from app.services.quotas import QuotaGuard, client_key_from_headers, format_retry_after


class _Clock:
  def __init__(self, start: float = 1_700_000_000_000.0) -> None:
    self.now = start

  def __call__(self) -> float:
    return self.now


def test_sixth_request_in_window_is_denied() -> None:
  clock = _Clock()
  guard = QuotaGuard(name="generation", clock=clock, rng=lambda: 1.0)
  decisions = [guard.admit("10.0.0.1", 60_000, 5) for _ in range(6)]

  assert [decision.allowed for decision in decisions] == [True, True, True, True, True, False]
  assert [decision.remaining for decision in decisions] == [4, 3, 2, 1, 0, 0]

  denied = decisions[-1]
  assert denied.retry_after_seconds == 60
  headers = denied.headers()
  assert headers["X-RateLimit-Limit"] == "5"
  assert headers["X-RateLimit-Remaining"] == "0"
  assert headers["Retry-After"] == "60"


def test_admitted_request_has_no_retry_after() -> None:
  guard = QuotaGuard(name="compile", clock=_Clock(), rng=lambda: 1.0)
  headers = guard.admit("10.0.0.1", 60_000, 30).headers()
  assert "Retry-After" not in headers
  assert headers["X-RateLimit-Remaining"] == "29"


def test_window_resets_after_expiry() -> None:
  clock = _Clock()
  guard = QuotaGuard(name="generation", clock=clock, rng=lambda: 1.0)
  for _ in range(6):
    guard.admit("10.0.0.1", 60_000, 5)

  clock.now += 30_000
  assert not guard.admit("10.0.0.1", 60_000, 5).allowed

  clock.now += 30_001
  decision = guard.admit("10.0.0.1", 60_000, 5)
  assert decision.allowed
  assert decision.remaining == 4


def test_clients_have_independent_windows() -> None:
  guard = QuotaGuard(name="generation", clock=_Clock(), rng=lambda: 1.0)
  for _ in range(5):
    guard.admit("10.0.0.1", 60_000, 5)

  assert not guard.admit("10.0.0.1", 60_000, 5).allowed
  assert guard.admit("10.0.0.2", 60_000, 5).allowed


def test_expired_windows_are_purged_opportunistically() -> None:
  clock = _Clock()
  rolls = iter([1.0, 1.0, 0.0])
  guard = QuotaGuard(name="generation", clock=clock, rng=lambda: next(rolls))
  guard.admit("10.0.0.1", 1_000, 5)
  guard.admit("10.0.0.2", 1_000, 5)
  assert len(guard) == 2

  clock.now += 5_000
  guard.admit("10.0.0.3", 1_000, 5)
  assert len(guard) == 1


def test_rejects_non_positive_limits() -> None:
  guard = QuotaGuard(name="generation")
  with pytest.raises(ValueError):
    guard.admit("10.0.0.1", 0, 5)
  with pytest.raises(ValueError):
    guard.admit("10.0.0.1", 60_000, 0)


def test_client_key_prefers_first_forwarded_hop() -> None:
  assert client_key_from_headers({"x-forwarded-for": "203.0.113.7, 10.0.0.1", "x-real-ip": "198.51.100.2"}, "127.0.0.9") == "203.0.113.7"
  assert client_key_from_headers({"x-real-ip": "198.51.100.2"}, "127.0.0.9") == "198.51.100.2"
  assert client_key_from_headers({}, "127.0.0.9") == "127.0.0.9"
  assert client_key_from_headers({}, None) == "127.0.0.1"


def test_format_retry_after() -> None:
  assert format_retry_after(1) == "1 second"
  assert format_retry_after(45) == "45 seconds"
  assert format_retry_after(60) == "1 minute"
  assert format_retry_after(125) == "3 minutes"
