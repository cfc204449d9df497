"""Compile lesson source into code the sandbox can execute."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.ai.errors import CompilationFailed
from app.compiler.transformer import transform_source
from app.compiler.transpiler import transpile
from app.compiler.tsx import unencodable_line
from app.validation.rules import DANGEROUS_PATTERNS, disallowed_imports

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 500_000
DEFAULT_MIN_CHARS = 100


@dataclass(frozen=True)
class CompilationResult:
  """Executable script body plus non-blocking parse diagnostics."""

  code: str
  diagnostics: tuple[str, ...] = ()


def _guard_input(source: object, *, max_chars: int, min_chars: int) -> str:
  if not isinstance(source, str) or not source:
    raise CompilationFailed("Code is required", status_code=400)

  if len(source) > max_chars:
    raise CompilationFailed(f"Code is too large ({round(len(source) / 1000)}KB). Maximum allowed: {max_chars // 1000}KB", status_code=413)

  if len(source.strip()) < min_chars:
    raise CompilationFailed("Code is too short to be a valid component", status_code=400)

  bad_line = unencodable_line(source)
  if bad_line is not None:
    raise CompilationFailed(f"Code contains an invalid character at line {bad_line}", status_code=400)

  # Imports are stripped below, so reject foreign modules before they silently disappear.
  foreign = disallowed_imports(source)
  if foreign:
    targets = ", ".join(f'"{target}"' for target in foreign)
    raise CompilationFailed(f"Code imports unsupported modules: {targets} (only React imports allowed)", status_code=400)

  return source


def compile_source(source: object, *, max_chars: int = DEFAULT_MAX_CHARS, min_chars: int = DEFAULT_MIN_CHARS) -> CompilationResult:
  """Strip module syntax, translate TSX, and rescan the output for unsafe primitives."""
  checked = _guard_input(source, max_chars=max_chars, min_chars=min_chars)
  transformed = transform_source(checked)

  try:
    result = transpile(transformed)
  except RecursionError as exc:
    raise CompilationFailed("Code is nested too deeply to compile", status_code=500) from exc

  if not result.code.strip():
    raise CompilationFailed("Compilation produced empty output. The code may be invalid.", status_code=500)

  unsafe = [message for pattern, message in DANGEROUS_PATTERNS if pattern.search(result.code)]
  if unsafe:
    logger.warning("Compiled output rejected by safety scan: %s", "; ".join(unsafe))
    raise CompilationFailed("Compiled code contains unsafe patterns and cannot be executed", status_code=500)

  diagnostics = tuple(diagnostic.render() for diagnostic in result.diagnostics)
  if diagnostics:
    # Diagnostics never block; the sandbox error guard reports runtime failures.
    logger.warning("TSX compilation warnings:\n%s", "\n".join(diagnostics))

  return CompilationResult(code=result.code, diagnostics=diagnostics)
