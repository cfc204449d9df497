"""Test configuration shared by unit and integration suites."""

from __future__ import annotations

import os

# Settings are read at import time by app.main, so the environment must be ready first.
# A developer .env must not leak a database DSN into the suites.
os.environ["LESSONFORGE_ENV_FILE"] = os.devnull
os.environ.setdefault("LESSONFORGE_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("LESSONFORGE_ENV", "test")
os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.pop("LESSONFORGE_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402

from tests.fakes import InMemoryLessonsRepository, ScriptedModel  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def repo() -> InMemoryLessonsRepository:
  return InMemoryLessonsRepository()


@pytest.fixture
def scripted_model() -> ScriptedModel:
  return ScriptedModel()
