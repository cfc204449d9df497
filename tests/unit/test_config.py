"""Unit tests for settings loading and the scoped .env reader."""

from __future__ import annotations

import pytest
from app.config import env_file_path, get_settings, load_env_file


def test_env_file_loads_only_service_keys(tmp_path) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text(
    "# local overrides\n"
    "export LESSONFORGE_ENV=staging\n"
    "LESSONFORGE_ALLOWED_ORIGINS='http://localhost:3000'\n"
    'GEMINI_API_KEY="abc123"\n'
    "AWS_SECRET_ACCESS_KEY=should-not-load\n"
    "not a pair\n",
    encoding="utf-8",
  )
  environ: dict[str, str] = {}

  loaded = load_env_file(env_file, environ=environ)

  assert loaded == ["LESSONFORGE_ENV", "LESSONFORGE_ALLOWED_ORIGINS", "GEMINI_API_KEY"]
  assert environ == {"LESSONFORGE_ENV": "staging", "LESSONFORGE_ALLOWED_ORIGINS": "http://localhost:3000", "GEMINI_API_KEY": "abc123"}


def test_env_file_never_overrides_process_environment(tmp_path) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("LESSONFORGE_ENV=staging\n", encoding="utf-8")
  environ = {"LESSONFORGE_ENV": "production"}

  assert load_env_file(env_file, environ=environ) == []
  assert environ["LESSONFORGE_ENV"] == "production"


def test_missing_env_file_is_ignored(tmp_path) -> None:
  assert load_env_file(tmp_path / "absent.env", environ={}) == []


def test_env_file_path_honours_override(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
  monkeypatch.setenv("LESSONFORGE_ENV_FILE", str(tmp_path / "custom.env"))
  assert env_file_path() == tmp_path / "custom.env"


@pytest.fixture
def fresh_settings():
  get_settings.cache_clear()
  yield get_settings
  get_settings.cache_clear()


def test_settings_defaults(fresh_settings) -> None:
  settings = fresh_settings()
  assert settings.max_generation_attempts == 3
  assert settings.generation_timeout_seconds == 600
  assert settings.generation_rate_limit == 5
  assert settings.compile_rate_limit == 30
  assert settings.allowed_origins == ("http://localhost:3000",)


@pytest.mark.parametrize(
  ("name", "value"),
  [
    ("LESSONFORGE_ALLOWED_ORIGINS", "*"),
    ("LESSONFORGE_MODEL_PROVIDER", "anthropic"),
    ("LESSONFORGE_MAX_GENERATION_ATTEMPTS", "0"),
    ("LESSONFORGE_QUOTA_CLEANUP_PROBABILITY", "1.5"),
    ("LESSONFORGE_COMPILE_MIN_CHARS", "600000"),
  ],
)
def test_invalid_settings_are_rejected(fresh_settings, monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError):
    fresh_settings()
