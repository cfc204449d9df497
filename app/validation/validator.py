"""Static validation entry point for generated lesson components."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from app.validation.rules import Rule, SourceUnit, default_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationVerdict:
  """Outcome of one validation pass; violations are empty exactly when valid."""

  is_valid: bool
  violations: tuple[str, ...] = ()


class StaticValidator:
  """Run every rule against a source text and collect all violations."""

  def __init__(self, rules: Sequence[Rule] | None = None) -> None:
    self._rules = tuple(rules) if rules is not None else tuple(default_rules())

  @property
  def rule_names(self) -> tuple[str, ...]:
    return tuple(rule.name for rule in self._rules)

  def validate(self, source: str | None) -> ValidationVerdict:
    """Return a fresh verdict; no state survives between calls."""
    unit = SourceUnit(source)
    violations: list[str] = []
    for rule in self._rules:
      violations.extend(rule.evaluate(unit))

    if violations:
      logger.debug("Validation rejected source chars=%d violations=%d", len(unit.text), len(violations))
    return ValidationVerdict(is_valid=not violations, violations=tuple(violations))
