"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_lesson_id() -> str:
  """Return a new lesson identifier."""
  return str(uuid.uuid4())


def generate_request_id() -> str:
  """Return a correlation id for a single HTTP request."""
  return uuid.uuid4().hex
