"""Static rules applied to generated lesson components.

How/Why:
  - Each rule is an independent object with `evaluate(unit) -> list[str]`; the
    validator runs all of them so callers get the complete violation list.
  - Rules share a `SourceUnit`, which parses the TSX once on first use.
  - Text rules stay regex based; only syntax and ordering checks need the tree.
"""

from __future__ import annotations

import re
from functools import cached_property
from typing import Protocol

from tree_sitter import Node

from app.compiler.tsx import FUNCTION_NODE_TYPES, ParsedSource, line_of, parse_tsx, syntax_diagnostics, unencodable_line, walk

ALLOWED_IMPORT = "react"

# Shared with the compiler's post-translation scan.
DANGEROUS_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
  (re.compile(r"\beval\s*\("), "Contains dangerous eval() function"),
  (re.compile(r"\bFunction\s*\("), "Contains dangerous Function() constructor"),
  (re.compile(r"innerHTML\s*="), "Contains dangerous innerHTML (XSS risk)"),
  (re.compile(r"dangerouslySetInnerHTML"), "Contains dangerouslySetInnerHTML (use with caution)"),
  (re.compile(r"__proto__"), "Contains __proto__ manipulation"),
  (re.compile(r"document\.write"), "Contains document.write (deprecated)"),
)

_DEFAULT_EXPORT = re.compile(r"\bexport\s+default\s+function\b")
_DEFAULT_EXPORT_NAME = re.compile(r"\bexport\s+default\s+function\s*\*?\s*([A-Za-z_$][\w$]*)?")
_STATIC_IMPORT = re.compile(r"^\s*import\s+(?:type\s+)?(?:[\w$*{}\s,]+?\s+from\s+)?[\"']([^\"']+)[\"']", re.MULTILINE)
_DYNAMIC_LOADER = re.compile(r"(?<![\w$.])(import|require)\s*\(\s*[\"'`]([^\"'`]*)")
_HOOK_REFERENCE = re.compile(r"\b(useState|useEffect|useMemo|useCallback|useRef|useContext|useReducer)\b")
_REACT_IMPORT = re.compile(r"from\s+[\"']react[\"']")

# Collection names lessons commonly derive UI from; referencing them early is a TDZ crash.
ORDERED_COLLECTIONS = frozenset(
  {
    "questions",
    "quizQuestions",
    "steps",
    "cards",
    "flashcards",
    "concepts",
    "items",
    "sections",
    "slides",
    "topics",
    "terms",
    "options",
    "answers",
    "levels",
    "challenges",
    "examples",
    "facts",
    "pairs",
    "words",
    "tabs",
  }
)
# Callbacks handed to these hooks run during render, in the enclosing scope.
_EAGER_HOOKS = frozenset({"useState", "useReducer", "useMemo", "useRef"})


class SourceUnit:
  """Source text under validation with a lazily built syntax tree."""

  def __init__(self, text: str | None) -> None:
    self.text = text or ""

  @cached_property
  def parsed(self) -> ParsedSource:
    return parse_tsx(self.text)


class Rule(Protocol):
  name: str

  def evaluate(self, unit: SourceUnit) -> list[str]: ...


class NonEmptyRule:
  name = "non_empty"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    if not unit.text.strip():
      return ["Code is empty"]
    return []


class EncodingRule:
  name = "encoding"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    line = unencodable_line(unit.text)
    if line is None:
      return []
    return [f"Invalid character at line {line} (unpaired surrogate cannot be encoded as UTF-8)"]


class SingleDefaultExportRule:
  name = "default_export"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    count = len(_DEFAULT_EXPORT.findall(unit.text))
    if count == 0:
      return ["Missing default export function (must use: export default function ComponentName())"]
    if count > 1:
      return [f"Found {count} default export functions (exactly one is allowed)"]
    return []


class ComponentNameRule:
  name = "component_name"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    match = _DEFAULT_EXPORT_NAME.search(unit.text)
    if match is None:
      return []
    component_name = match.group(1)
    if not component_name:
      return ["Default export function must be named (e.g. export default function LessonComponent())"]
    if not component_name[0].isupper():
      return [f'Component name "{component_name}" must start with uppercase letter']
    return []


class MarkupReturnRule:
  name = "markup_return"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    text = unit.text
    if "return (" in text or "return(" in text or "return <" in text:
      return []
    return ["Missing return statement with JSX"]


class ClosedMarkupRule:
  name = "closed_markup"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    text = unit.text
    if "<" in text and ">" in text and "</" not in text:
      return ["JSX elements not properly closed"]
    return []


class DangerousPatternRule:
  name = "dangerous_patterns"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    return [message for pattern, message in DANGEROUS_PATTERNS if pattern.search(unit.text)]


def disallowed_imports(text: str) -> list[str]:
  """Return every module target other than React, in source order."""
  targets = [match.group(1) for match in _STATIC_IMPORT.finditer(text)]
  targets.extend(match.group(2) for match in _DYNAMIC_LOADER.finditer(text))
  return [target for target in targets if target != ALLOWED_IMPORT]


class ImportRule:
  name = "imports"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    return [f'Contains unsupported import: "{target}" (only React imports allowed)' for target in disallowed_imports(unit.text)]


class BalancedDelimiterRule:
  name = "balanced_delimiters"

  _PAIRS = (("{", "}", "braces"), ("(", ")", "parentheses"), ("[", "]", "brackets"))

  def evaluate(self, unit: SourceUnit) -> list[str]:
    violations = []
    for opener, closer, label in self._PAIRS:
      opened = unit.text.count(opener)
      closed = unit.text.count(closer)
      if opened != closed:
        violations.append(f"Unbalanced {label} ({opened} open, {closed} close)")
    return violations


class ClientDirectiveRule:
  name = "client_directive"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    if '"use client"' in unit.text or "'use client'" in unit.text:
      return []
    return ['Missing "use client" directive at the top']


class HookImportRule:
  name = "hook_import"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    if _HOOK_REFERENCE.search(unit.text) and not _REACT_IMPORT.search(unit.text):
      return ["Uses React hooks but missing React import"]
    return []


def _callee_name(call: Node, parsed: ParsedSource) -> str:
  callee = call.child_by_field_name("function")
  if callee is None:
    return ""
  return parsed.text(callee).rsplit(".", 1)[-1].strip()


def _execution_scope(node: Node, parsed: ParsedSource) -> tuple[int, int]:
  """Return the span of the function whose invocation evaluates `node`."""
  current = node.parent
  while current is not None:
    if current.type in FUNCTION_NODE_TYPES:
      holder = current.parent
      is_eager = holder is not None and holder.type == "arguments" and holder.parent is not None and holder.parent.type == "call_expression" and _callee_name(holder.parent, parsed) in _EAGER_HOOKS
      if not is_eager:
        return (current.start_byte, current.end_byte)
    current = current.parent
  return (0, len(parsed.data))


class DeclarationOrderRule:
  """Flag collection variables read before their declaring statement has run.

  A best-effort heuristic: references are matched by name inside the same
  function body, and callbacks passed to eager hooks count as the enclosing body.
  """

  name = "declaration_order"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    if not unit.text.strip():
      return []
    parsed = unit.parsed
    declarators: list[tuple[Node, Node]] = []
    references: dict[str, list[Node]] = {}
    for node in walk(parsed.root):
      if node.type == "variable_declarator":
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.type == "identifier" and parsed.text(name_node) in ORDERED_COLLECTIONS:
          declarators.append((node, name_node))
      elif node.type in {"identifier", "shorthand_property_identifier"}:
        name = parsed.text(node)
        if name in ORDERED_COLLECTIONS:
          references.setdefault(name, []).append(node)

    violations: list[str] = []
    seen: set[tuple[str, int]] = set()
    for declarator, name_node in declarators:
      name = parsed.text(name_node)
      statement = declarator.parent or declarator
      block = statement.parent or statement
      scope = _execution_scope(declarator, parsed)
      for reference in references.get(name, []):
        if reference.start_byte == name_node.start_byte or reference.start_byte >= statement.end_byte:
          continue
        # Only references inside the declaring block can hit the same binding.
        if reference.start_byte < block.start_byte:
          continue
        if _execution_scope(reference, parsed) != scope:
          continue
        key = (name, line_of(reference))
        if key in seen:
          continue
        seen.add(key)
        violations.append(f'"{name}" is used at line {line_of(reference)} before it is declared at line {line_of(name_node)}')
    return violations


class SyntaxRule:
  name = "syntax"

  def evaluate(self, unit: SourceUnit) -> list[str]:
    if not unit.text.strip():
      return []
    return [f"Syntax error at line {diagnostic.line}: {diagnostic.message}" for diagnostic in syntax_diagnostics(unit.parsed)]


def default_rules() -> list[Rule]:
  """Return the rule set applied to every generated component, in reporting order."""
  return [
    NonEmptyRule(),
    EncodingRule(),
    SingleDefaultExportRule(),
    ComponentNameRule(),
    MarkupReturnRule(),
    ClosedMarkupRule(),
    DangerousPatternRule(),
    ImportRule(),
    BalancedDelimiterRule(),
    ClientDirectiveRule(),
    HookImportRule(),
    DeclarationOrderRule(),
    SyntaxRule(),
  ]
