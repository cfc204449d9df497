"""TSX to ES2020 translation over the tree-sitter syntax tree.

How/Why:
  - Output is rebuilt from byte slices of the original source, so anything the
    translator does not touch (comments, formatting, modern syntax) passes through.
  - TypeScript-only syntax is erased, enums become frozen objects, and JSX is
    lowered to `React.createElement` calls with `React.Fragment` for fragments.
  - Parse problems are reported as diagnostics; they never stop translation.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass

from tree_sitter import Node

from app.compiler.tsx import ParsedSource, SyntaxDiagnostic, line_of, parse_tsx, syntax_diagnostics

logger = logging.getLogger(__name__)

JSX_FACTORY = "React.createElement"
JSX_FRAGMENT = "React.Fragment"

_ERASED_NODES = frozenset(
  {
    "type_annotation",
    "type_arguments",
    "type_parameters",
    "type_predicate_annotation",
    "asserts_annotation",
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
    "function_signature",
    "method_signature",
    "abstract_method_signature",
    "index_signature",
  }
)
# Modifier tokens that only exist in TypeScript, keyed by the parent that owns them.
_ERASED_TOKENS: dict[str, frozenset[str]] = {
  "optional_parameter": frozenset({"?"}),
  "required_parameter": frozenset({"readonly"}),
  "public_field_definition": frozenset({"?", "!", "readonly", "declare", "abstract", "override"}),
  "method_definition": frozenset({"?", "override"}),
  "abstract_class_declaration": frozenset({"abstract"}),
}
_UNWRAPPED_NODES = frozenset({"as_expression", "satisfies_expression", "non_null_expression"})
_UNSUPPORTED_NODES = {"internal_module": "namespace declarations are not supported", "module": "module declarations are not supported"}
_JSX_CHILD_NODES = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_expression"})
_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")


@dataclass(frozen=True)
class TranspileResult:
  code: str
  diagnostics: tuple[SyntaxDiagnostic, ...]


def clean_jsx_text(raw: str) -> str:
  """Apply JSX whitespace rules: drop indentation and newlines, keep inline spacing."""
  lines = re.split(r"\r\n|\n|\r", html.unescape(raw))
  last_non_empty = 0
  for index, line in enumerate(lines):
    if re.search(r"[^ \t]", line):
      last_non_empty = index

  pieces: list[str] = []
  for index, line in enumerate(lines):
    trimmed = line.replace("\t", " ")
    if index != 0:
      trimmed = trimmed.lstrip(" ")
    if index != len(lines) - 1:
      trimmed = trimmed.rstrip(" ")
    if trimmed:
      if index != last_non_empty:
        trimmed += " "
      pieces.append(trimmed)
  return "".join(pieces)


class _Emitter:
  def __init__(self, parsed: ParsedSource) -> None:
    self.parsed = parsed
    self.diagnostics: list[SyntaxDiagnostic] = []

  def emit(self, node: Node) -> str:
    node_type = node.type
    if node_type in _ERASED_NODES:
      return ""
    if node_type in _UNWRAPPED_NODES:
      return self.emit(node.named_children[0]) if node.named_children else ""
    if node_type == "enum_declaration":
      return self._emit_enum(node)
    if node_type in {"jsx_element", "jsx_self_closing_element"}:
      return self._emit_element(node)
    if node_type in _UNSUPPORTED_NODES:
      self._note(node, _UNSUPPORTED_NODES[node_type])
    return self._emit_default(node)

  def _note(self, node: Node, message: str) -> None:
    self.diagnostics.append(SyntaxDiagnostic(line=line_of(node), column=node.start_point[1] + 1, message=message))

  def _emit_default(self, node: Node) -> str:
    if not node.children:
      return self.parsed.text(node)

    dropped = _ERASED_TOKENS.get(node.type, frozenset())
    parts: list[str] = []
    position = node.start_byte
    for child in node.children:
      parts.append(self.parsed.slice(position, child.start_byte))
      if not (child.type in dropped and not child.is_named):
        parts.append(self.emit(child))
      position = child.end_byte
    parts.append(self.parsed.slice(position, node.end_byte))
    return "".join(parts)

  def _emit_enum(self, node: Node) -> str:
    name_node = node.child_by_field_name("name")
    body = node.child_by_field_name("body")
    name = self.parsed.text(name_node) if name_node is not None else "Enum"
    members: list[str] = []
    next_value: int | None = 0
    for member in body.named_children if body is not None else []:
      if member.type == "comment":
        continue
      if member.type == "enum_assignment":
        key_node = member.child_by_field_name("name") or member.named_children[0]
        value_node = member.child_by_field_name("value") or member.named_children[-1]
        value = self.emit(value_node)
        next_value = int(value) + 1 if value_node.type == "number" and value.isdigit() else None
      else:
        key_node = member
        value = str(next_value) if next_value is not None else "undefined"
        next_value = next_value + 1 if next_value is not None else None
      members.append(f"{self.parsed.text(key_node)}: {value}")
    return f"const {name} = Object.freeze({{ {', '.join(members)} }});"

  def _element_type(self, opening: Node) -> str:
    name_node = opening.child_by_field_name("name")
    if name_node is None:
      return JSX_FRAGMENT
    name = self.parsed.text(name_node)
    if name_node.type == "identifier" and (name[:1].islower() or "-" in name):
      return json.dumps(name)
    if name_node.type == "jsx_namespace_name":
      return json.dumps(name)
    return name

  def _emit_props(self, opening: Node) -> str:
    entries: list[str] = []
    for attribute in opening.named_children:
      if attribute.type == "jsx_attribute":
        entries.append(self._emit_attribute(attribute))
      elif attribute.type == "jsx_expression":
        inner = [child for child in attribute.named_children if child.type != "comment"]
        if inner and inner[0].type == "spread_element":
          entries.append(self.emit(inner[0]))
    if not entries:
      return "null"
    return "{ " + ", ".join(entries) + " }"

  def _emit_attribute(self, attribute: Node) -> str:
    named = [child for child in attribute.named_children if child.type != "comment"]
    key = self.parsed.text(named[0])
    rendered_key = key if _IDENTIFIER.match(key) else json.dumps(key)
    if len(named) < 2:
      return f"{rendered_key}: true"

    value = named[1]
    if value.type in {"string", "jsx_string"}:
      literal = self.parsed.text(value)[1:-1]
      return f"{rendered_key}: {json.dumps(html.unescape(literal), ensure_ascii=False)}"
    if value.type == "jsx_expression":
      inner = [child for child in value.named_children if child.type != "comment"]
      return f"{rendered_key}: {self.emit(inner[0]) if inner else 'undefined'}"
    return f"{rendered_key}: {self.emit(value)}"

  def _emit_children(self, element: Node, opening: Node, closing: Node | None) -> list[str]:
    children: list[str] = []
    end = closing.start_byte if closing is not None else element.end_byte
    position = opening.end_byte
    nested = [child for child in element.named_children if child.type in _JSX_CHILD_NODES and child.start_byte >= opening.end_byte and child.end_byte <= end]
    for child in nested:
      self._append_text(children, position, child.start_byte)
      if child.type == "jsx_expression":
        inner = [grandchild for grandchild in child.named_children if grandchild.type != "comment"]
        if inner:
          children.append(self.emit(inner[0]))
      else:
        children.append(self.emit(child))
      position = child.end_byte
    self._append_text(children, position, end)
    return children

  def _append_text(self, children: list[str], start: int, end: int) -> None:
    if end <= start:
      return
    text = clean_jsx_text(self.parsed.slice(start, end))
    if text:
      children.append(json.dumps(text, ensure_ascii=False))

  def _emit_element(self, node: Node) -> str:
    if node.type == "jsx_self_closing_element":
      arguments = [self._element_type(node), self._emit_props(node)]
    else:
      opening = node.child_by_field_name("open_tag") or node.named_children[0]
      closing = node.child_by_field_name("close_tag")
      arguments = [self._element_type(opening), self._emit_props(opening)]
      arguments.extend(self._emit_children(node, opening, closing))
    return f"{JSX_FACTORY}({', '.join(arguments)})"


def transpile(source: str) -> TranspileResult:
  """Translate TSX source into ES2020 with classic-runtime JSX."""
  parsed = parse_tsx(source)
  emitter = _Emitter(parsed)
  code = emitter.emit(parsed.root)
  diagnostics = tuple(syntax_diagnostics(parsed)) + tuple(emitter.diagnostics)
  logger.debug("Transpiled source bytes=%d output_chars=%d diagnostics=%d", len(parsed.data), len(code), len(diagnostics))
  return TranspileResult(code=code, diagnostics=diagnostics)
