"""Thin wrapper around the tree-sitter TSX grammar."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())

# Unpaired UTF-16 halves survive JSON decoding but have no UTF-8 encoding.
LONE_SURROGATE = re.compile("[\ud800-\udfff]")

FUNCTION_NODE_TYPES = frozenset(
  {
    "function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "method_definition",
    "generator_function_declaration",
    "generator_function",
  }
)


@dataclass(frozen=True)
class SyntaxDiagnostic:
  """A single parse problem with 1-based coordinates."""

  line: int
  column: int
  message: str

  def render(self) -> str:
    return f"Line {self.line}: {self.message}"


@dataclass(frozen=True)
class ParsedSource:
  """Source text paired with its concrete syntax tree."""

  source: str
  data: bytes
  tree: Tree

  @property
  def root(self) -> Node:
    return self.tree.root_node

  def text(self, node: Node) -> str:
    """Return the exact source text covered by a node."""
    return self.data[node.start_byte : node.end_byte].decode("utf-8")

  def slice(self, start_byte: int, end_byte: int) -> str:
    return self.data[start_byte:end_byte].decode("utf-8")


def parse_tsx(source: str) -> ParsedSource:
  """Parse TSX source; the grammar is error tolerant so this never raises on bad input."""
  # Parsers are not shared between threads; building one is cheap.
  parser = Parser(TSX_LANGUAGE)
  # Lone surrogates become "?" so parsing stays total; callers report them separately.
  data = source.encode("utf-8", errors="replace")
  return ParsedSource(source=source, data=data, tree=parser.parse(data))


def unencodable_line(source: str) -> int | None:
  """Return the 1-based line of the first lone surrogate, if any."""
  match = LONE_SURROGATE.search(source)
  if match is None:
    return None
  return source.count("\n", 0, match.start()) + 1


def walk(node: Node) -> Iterator[Node]:
  """Yield a node and its descendants in source order."""
  stack = [node]
  while stack:
    current = stack.pop()
    yield current
    stack.extend(reversed(current.children))


def line_of(node: Node) -> int:
  return node.start_point[0] + 1


def syntax_diagnostics(parsed: ParsedSource, *, limit: int = 10) -> list[SyntaxDiagnostic]:
  """Collect ERROR and MISSING nodes as readable diagnostics."""
  diagnostics: list[SyntaxDiagnostic] = []
  if not parsed.root.has_error:
    return diagnostics

  stack = [parsed.root]
  while stack and len(diagnostics) < limit:
    node = stack.pop()
    row, column = node.start_point[0], node.start_point[1]
    if node.is_missing:
      diagnostics.append(SyntaxDiagnostic(line=row + 1, column=column + 1, message=f"Missing '{node.type}'"))
      continue

    if node.is_error:
      snippet = parsed.text(node).strip().splitlines()
      near = snippet[0][:40] if snippet else ""
      message = f"Unexpected syntax near '{near}'" if near else "Unexpected syntax"
      diagnostics.append(SyntaxDiagnostic(line=row + 1, column=column + 1, message=message))
      continue

    # Only descend into subtrees that contain a problem.
    stack.extend(child for child in reversed(node.children) if child.has_error or child.is_missing)

  return diagnostics
