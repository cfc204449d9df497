"""Prompt helpers shared by agents."""

from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path

from app.services.admission import DEFAULT_LANGUAGE, detect_language_script

TITLE_MAX_CHARS = 60
FALLBACK_TITLE = "Untitled Lesson"

_FENCE = re.compile(r"```(?:typescript|tsx|jsx|ts|javascript|js)?[ \t]*\r?\n?", re.IGNORECASE)
_PREAMBLE = re.compile(r"^(?:Here's the fixed code|Here is the fixed code|Fixed code)\s*:?\s*\n*", re.IGNORECASE)


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers with request context."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)

  return rendered


def _language_note(outline: str) -> str:
  language = detect_language_script(outline)
  if language == DEFAULT_LANGUAGE:
    return ""
  return (
    f"\n\nIMPORTANT: The lesson outline is in {language}. Generate the lesson content in {language} script while keeping "
    f"the code structure and comments in English. The educational content should be in {language} to match the user's request."
  )


def render_generation_prompt(outline: str, attempt: int) -> str:
  """Render the first-draft prompt; `attempt` is 1-based."""
  attempt_note = f"\nThis is attempt {attempt}. Previous attempts failed. Ensure proper syntax and structure.\n" if attempt > 1 else ""
  return _replace_placeholders(_load_prompt("generate_lesson.md"), {"LANGUAGE_NOTE": _language_note(outline), "ATTEMPT_NOTE": attempt_note, "OUTLINE": outline})


def render_repair_prompt(outline: str, code: str, violations: Sequence[str]) -> str:
  """Render the repair prompt listing every violation of the previous draft."""
  errors = "\n".join(f"{index}. {violation}" for index, violation in enumerate(violations, start=1))
  values = {"ERROR_COUNT": str(len(violations)), "ERRORS": errors, "CODE": code, "OUTLINE": outline}
  return _replace_placeholders(_load_prompt("repair_lesson.md"), values)


def render_title_prompt(outline: str) -> str:
  return _replace_placeholders(_load_prompt("extract_title.md"), {"OUTLINE": outline})


def clean_code_response(text: str) -> str:
  """Strip code fences and chatty preambles from a model response."""
  cleaned = _FENCE.sub("", text or "").strip()
  return _PREAMBLE.sub("", cleaned).strip()


def clean_title(text: str | None) -> str:
  """Normalize a model-suggested title to a single short line."""
  first_line = (text or "").strip().splitlines()[0] if (text or "").strip() else ""
  title = first_line.strip().strip("\"'*#").strip()
  if not title:
    return FALLBACK_TITLE
  return truncate_title(title)


def truncate_title(text: str) -> str:
  collapsed = " ".join(text.split())
  if len(collapsed) <= TITLE_MAX_CHARS:
    return collapsed
  return collapsed[: TITLE_MAX_CHARS - 3].rstrip() + "..."


@lru_cache(maxsize=8)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parents[1] / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc
