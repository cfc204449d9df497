"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from collections.abc import MutableMapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_ENV_PREFIX = "LESSONFORGE_"
# Provider and hosting keys read below without the service prefix.
_UNPREFIXED_KEYS = frozenset({"GEMINI_API_KEY", "OPENROUTER_API_KEY", "DATABASE_URL"})


def env_file_path() -> Path:
  """Return the .env file to load; `LESSONFORGE_ENV_FILE` overrides the repo-root default."""
  override = os.getenv("LESSONFORGE_ENV_FILE")
  if override:
    return Path(override)
  return Path(__file__).resolve().parents[1] / ".env"


def load_env_file(path: Path, *, environ: MutableMapping[str, str] = os.environ) -> list[str]:
  """Copy this service's keys from a .env file into `environ` and return the keys set.

  How/Why:
    - Only `LESSONFORGE_*` keys and the few unprefixed provider keys are read, so a
      shared .env cannot leak unrelated settings into the process.
    - Variables already present in `environ` always win over the file.
  """
  if not path.is_file():
    return []

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip().removeprefix("export ").strip()
    if not line or line.startswith("#") or "=" not in line:
      continue
    key, value = (part.strip() for part in line.split("=", 1))
    if not (key.startswith(_ENV_PREFIX) or key in _UNPREFIXED_KEYS) or key in environ:
      continue
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
      value = value[1:-1]
    environ[key] = value
    loaded.append(key)
  return loaded


load_env_file(env_file_path())

_DEFAULT_REACT_URL = "https://unpkg.com/react@18.3.1/umd/react.production.min.js"
_DEFAULT_REACT_DOM_URL = "https://unpkg.com/react-dom@18.3.1/umd/react-dom.production.min.js"
_DEFAULT_TAILWIND_URL = "https://cdn.tailwindcss.com/3.4.16"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the LessonForge service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  gemini_api_key: str | None
  openrouter_api_key: str | None
  model_provider: str
  generation_model: str
  title_model: str
  max_generation_attempts: int
  generation_timeout_seconds: int
  generation_rate_limit: int
  generation_rate_window_ms: int
  compile_rate_limit: int
  compile_rate_window_ms: int
  quota_cleanup_probability: float
  duplicate_window_seconds: int
  compile_max_chars: int
  compile_min_chars: int
  failed_retention_days: int
  sandbox_react_url: str
  sandbox_react_dom_url: str
  sandbox_tailwind_url: str


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("LESSONFORGE_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("LESSONFORGE_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("LESSONFORGE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")

  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("LESSONFORGE_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("LESSONFORGE_DEBUG"))

  log_max_bytes = _positive_int("LESSONFORGE_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("LESSONFORGE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("LESSONFORGE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  model_provider = (os.getenv("LESSONFORGE_MODEL_PROVIDER") or "gemini").strip().lower()
  if model_provider not in {"gemini", "openrouter"}:
    raise ValueError("LESSONFORGE_MODEL_PROVIDER must be 'gemini' or 'openrouter'.")
  default_model = "gemini-2.0-flash" if model_provider == "gemini" else "google/gemini-2.0-flash-001"

  # Generation pipeline bounds.
  max_generation_attempts = _positive_int("LESSONFORGE_MAX_GENERATION_ATTEMPTS", "3")
  generation_timeout_seconds = _positive_int("LESSONFORGE_GENERATION_TIMEOUT_SECONDS", "600")

  quota_cleanup_probability = float(os.getenv("LESSONFORGE_QUOTA_CLEANUP_PROBABILITY", "0.01"))
  if not 0.0 <= quota_cleanup_probability <= 1.0:
    raise ValueError("LESSONFORGE_QUOTA_CLEANUP_PROBABILITY must be between 0 and 1.")

  compile_max_chars = _positive_int("LESSONFORGE_COMPILE_MAX_CHARS", "500000")
  compile_min_chars = _positive_int("LESSONFORGE_COMPILE_MIN_CHARS", "100")
  if compile_min_chars >= compile_max_chars:
    raise ValueError("LESSONFORGE_COMPILE_MIN_CHARS must be smaller than LESSONFORGE_COMPILE_MAX_CHARS.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("LESSONFORGE_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("LESSONFORGE_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("LESSONFORGE_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("LESSONFORGE_PG_CONNECT_TIMEOUT", "5"),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    model_provider=model_provider,
    generation_model=(os.getenv("LESSONFORGE_GENERATION_MODEL") or default_model).strip(),
    title_model=(os.getenv("LESSONFORGE_TITLE_MODEL") or default_model).strip(),
    max_generation_attempts=max_generation_attempts,
    generation_timeout_seconds=generation_timeout_seconds,
    generation_rate_limit=_positive_int("LESSONFORGE_GENERATION_RATE_LIMIT", "5"),
    generation_rate_window_ms=_positive_int("LESSONFORGE_GENERATION_RATE_WINDOW_MS", "60000"),
    compile_rate_limit=_positive_int("LESSONFORGE_COMPILE_RATE_LIMIT", "30"),
    compile_rate_window_ms=_positive_int("LESSONFORGE_COMPILE_RATE_WINDOW_MS", "60000"),
    quota_cleanup_probability=quota_cleanup_probability,
    duplicate_window_seconds=_positive_int("LESSONFORGE_DUPLICATE_WINDOW_SECONDS", "300"),
    compile_max_chars=compile_max_chars,
    compile_min_chars=compile_min_chars,
    failed_retention_days=_positive_int("LESSONFORGE_FAILED_RETENTION_DAYS", "7"),
    sandbox_react_url=(os.getenv("LESSONFORGE_SANDBOX_REACT_URL") or _DEFAULT_REACT_URL).strip(),
    sandbox_react_dom_url=(os.getenv("LESSONFORGE_SANDBOX_REACT_DOM_URL") or _DEFAULT_REACT_DOM_URL).strip(),
    sandbox_tailwind_url=(os.getenv("LESSONFORGE_SANDBOX_TAILWIND_URL") or _DEFAULT_TAILWIND_URL).strip(),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("LESSONFORGE_DEBUG"))
  pg_connect_timeout = _positive_int("LESSONFORGE_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("LESSONFORGE_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
