"""Text-level rewrites that turn a lesson module into a plain script body."""

from __future__ import annotations

import re

ENTRY_POINT = "LessonComponent"

_DIRECTIVE_LINE = re.compile(r"^[ \t]*[\"']use\s+client[\"'][ \t]*;?[ \t]*(?:\r?\n|$)", re.MULTILINE | re.IGNORECASE)
# Unquoted or half-quoted directives only count at the very top of the file.
_LEADING_DIRECTIVE = re.compile(r"\A\s*[\"']?use\s+client\b[\"']?[ \t]*;?\s*", re.IGNORECASE)

_IMPORT_FROM = re.compile(r"^[ \t]*import\s+[\s\S]*?\bfrom\s*[\"'][^\"']+[\"'][ \t]*;?[ \t]*(?:\r?\n)?", re.MULTILINE)
_SIDE_EFFECT_IMPORT = re.compile(r"^[ \t]*import\s*[\"'][^\"']+[\"'][ \t]*;?[ \t]*(?:\r?\n)?", re.MULTILINE)

_DEFAULT_EXPORT_FUNCTION = re.compile(r"\bexport\s+default\s+function(?:\s+[A-Za-z_$][\w$]*|\s*)(?=\s*[<(])")
_REMAINING_EXPORT = re.compile(r"^([ \t]*)export\s+(?:default\s+)?", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


def strip_client_directive(source: str) -> str:
  without_lines = _DIRECTIVE_LINE.sub("", source)
  return _LEADING_DIRECTIVE.sub("", without_lines)


def strip_imports(source: str) -> str:
  return _SIDE_EFFECT_IMPORT.sub("", _IMPORT_FROM.sub("", source))


def rebind_entry_point(source: str) -> str:
  """Rename the default-exported function to the fixed entry point name."""
  return _DEFAULT_EXPORT_FUNCTION.sub(f"function {ENTRY_POINT}", source)


def strip_exports(source: str) -> str:
  return _REMAINING_EXPORT.sub(r"\1", source)


def transform_source(source: str) -> str:
  """Apply every module-level rewrite in order and normalize blank lines."""
  transformed = strip_client_directive(source)
  transformed = strip_imports(transformed)
  transformed = rebind_entry_point(transformed)
  transformed = strip_exports(transformed)
  return _BLANK_RUNS.sub("\n\n", transformed.strip())
