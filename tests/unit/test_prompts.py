"""Unit tests for prompt rendering and model response cleanup."""

from __future__ import annotations

from app.ai.agents.prompts import FALLBACK_TITLE, TITLE_MAX_CHARS, clean_code_response, clean_title, render_generation_prompt, render_repair_prompt, render_title_prompt, truncate_title
from tests.fakes import VALID_COMPONENT


def test_generation_prompt_embeds_outline() -> None:
  prompt = render_generation_prompt("Explain fractions with pizza slices", 1)
  assert prompt.endswith("Explain fractions with pizza slices")
  assert "This is attempt" not in prompt
  assert "IMPORTANT: The lesson outline is in" not in prompt
  assert "{{" not in prompt


def test_generation_prompt_notes_retries() -> None:
  prompt = render_generation_prompt("Explain fractions with pizza slices", 2)
  assert "This is attempt 2. Previous attempts failed." in prompt


def test_generation_prompt_requests_matching_script() -> None:
  prompt = render_generation_prompt("प्रकाश संश्लेषण क्या है", 1)
  assert "The lesson outline is in Hindi/Marathi (Devanagari)" in prompt


def test_repair_prompt_lists_every_violation() -> None:
  violations = ("Missing default export function", 'Missing "use client" directive at the top')
  prompt = render_repair_prompt("Explain fractions", VALID_COMPONENT, violations)
  assert "ERRORS (2):" in prompt
  assert "1. Missing default export function" in prompt
  assert '2. Missing "use client" directive at the top' in prompt
  assert VALID_COMPONENT.strip() in prompt
  assert "{{" not in prompt


def test_title_prompt_embeds_outline() -> None:
  assert render_title_prompt("Quiz on the solar system").endswith("Lesson outline: Quiz on the solar system")


def test_clean_code_response_strips_fences_and_preambles() -> None:
  assert clean_code_response(f"```tsx\n{VALID_COMPONENT}```") == VALID_COMPONENT.strip()
  assert clean_code_response(f"Here's the fixed code:\n\n{VALID_COMPONENT}") == VALID_COMPONENT.strip()
  assert clean_code_response("") == ""


def test_clean_title() -> None:
  assert clean_title('"Photosynthesis Basics"\nA lesson about plants') == "Photosynthesis Basics"
  assert clean_title("## Fractions") == "Fractions"
  assert clean_title("   ") == FALLBACK_TITLE
  assert clean_title(None) == FALLBACK_TITLE


def test_truncate_title() -> None:
  long_title = truncate_title("word " * 30)
  assert len(long_title) <= TITLE_MAX_CHARS
  assert long_title.endswith("...")
  assert truncate_title("  Short   title ") == "Short title"
