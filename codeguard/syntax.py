"""Simplified syntax model that rules inspect, and the ``ast`` adapter that builds it.

The standard library parser does the real work. This module only reshapes its
output into :class:`SyntaxNode` trees with a small, stable vocabulary of kinds
(``Import``, ``Call``, ``Assignment``, ``ExceptHandler``, ``StringLiteral`` ...)
so rules never touch ``ast`` directly.
"""

from __future__ import annotations

import ast
import io
import re
import tokenize
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import ParseError

NOSEC_PATTERN = re.compile(r"#\s*nosec\b:?([^#]*)", re.IGNORECASE)
RULE_ID_PATTERN = re.compile(r"\b[A-Z]+[0-9]+\b", re.IGNORECASE)

_SKIPPED_NODES = (ast.expr_context, ast.boolop, ast.operator, ast.unaryop, ast.cmpop)


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """A node in the simplified tree.

    ``attributes`` holds scalar facts about the node, ``children`` maps a role
    name to the ordered child nodes filling that role.
    """

    kind: str
    line: int
    unit_id: str = ""
    attributes: Mapping[str, Any] = field(default_factory=dict)
    children: Mapping[str, Tuple["SyntaxNode", ...]] = field(default_factory=dict)

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def children_of(self, role: str) -> Tuple["SyntaxNode", ...]:
        return self.children.get(role, ())

    def child(self, role: str) -> Optional["SyntaxNode"]:
        nodes = self.children_of(role)
        return nodes[0] if nodes else None

    def iter_children(self) -> Iterator["SyntaxNode"]:
        for nodes in self.children.values():
            yield from nodes

    def walk(self) -> Iterator["SyntaxNode"]:
        """Yield this node and every descendant in document order."""

        stack: List[SyntaxNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.iter_children())))

    def find(self, kind: str) -> Iterator["SyntaxNode"]:
        return (node for node in self.walk() if node.kind == kind)


@dataclass(frozen=True, eq=False)
class SourceUnit:
    """One module under scan with its fully built syntax tree."""

    identifier: str
    root: SyntaxNode
    line_count: int
    suppressions: Mapping[int, FrozenSet[str]] = field(default_factory=dict)

    def is_suppressed(self, line: int, rule_id: str) -> bool:
        """Return True if a ``# nosec`` comment on ``line`` covers ``rule_id``.

        A bare ``# nosec`` covers every rule; ``# nosec B105,B303`` covers only
        the listed IDs.
        """

        rule_ids = self.suppressions.get(line)
        if rule_ids is None:
            return False
        return not rule_ids or rule_id.upper() in rule_ids


@dataclass(frozen=True)
class SourceText:
    """In-memory source waiting to be parsed."""

    identifier: str
    text: str


def parse_source(identifier: str, source: Union[str, bytes]) -> SourceUnit:
    """Parse ``source`` into a :class:`SourceUnit` or raise :class:`ParseError`.

    Raw bytes are decoded the way the interpreter would, honouring a UTF-8
    byte order mark or a coding declaration.
    """

    if isinstance(source, str):
        source = source.lstrip("\ufeff")
    try:
        tree = ast.parse(source, filename=identifier)
    except SyntaxError as exc:
        raise ParseError(identifier, exc.lineno, exc.msg) from exc
    except ValueError as exc:
        raise ParseError(identifier, None, str(exc)) from exc
    except (RecursionError, MemoryError) as exc:
        raise ParseError(identifier, None, "nesting too deep to parse") from exc

    builder = _TreeBuilder(identifier, collect_import_aliases(tree))
    try:
        root = builder.build(tree)
    except RecursionError as exc:
        raise ParseError(identifier, None, "nesting too deep to analyze") from exc

    try:
        text = source if isinstance(source, str) else decode_source(source)
        suppressions = collect_suppressions(text)
    except (SyntaxError, UnicodeDecodeError, LookupError, tokenize.TokenError) as exc:
        raise ParseError(identifier, None, f"cannot tokenize source: {exc}") from exc

    return SourceUnit(
        identifier=identifier,
        root=root,
        line_count=len(text.splitlines()),
        suppressions=MappingProxyType(suppressions),
    )


def decode_source(data: bytes) -> str:
    """Decode module bytes using their byte order mark or coding declaration."""

    encoding, _ = tokenize.detect_encoding(io.BytesIO(data).readline)
    return data.decode(encoding)


def collect_suppressions(text: str) -> Dict[int, FrozenSet[str]]:
    """Map line numbers to the rule IDs their ``# nosec`` comment names.

    Only real comment tokens count, so ``"# nosec"`` inside a string does not.
    """

    suppressions: Dict[int, FrozenSet[str]] = {}
    for token in tokenize.generate_tokens(io.StringIO(text).readline):
        if token.type != tokenize.COMMENT:
            continue
        match = NOSEC_PATTERN.search(token.string)
        if not match:
            continue
        rule_ids = frozenset(rule_id.upper() for rule_id in RULE_ID_PATTERN.findall(match.group(1)))
        suppressions[token.start[0]] = rule_ids
    return suppressions


def collect_import_aliases(tree: ast.AST) -> Dict[str, str]:
    """Map every name bound by an import to the fully qualified name it refers to."""

    aliases: Dict[str, str] = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    aliases[alias.asname] = alias.name
                else:
                    head = alias.name.split(".", 1)[0]
                    aliases[head] = head
        elif isinstance(node, ast.ImportFrom):
            base = _import_from_base(node)
            for alias in node.names:
                if alias.name == "*":
                    continue
                aliases[alias.asname or alias.name] = f"{base}.{alias.name}" if base else alias.name
    return aliases


def _import_from_base(node: ast.ImportFrom) -> str:
    return "." * (node.level or 0) + (node.module or "")


class _TreeBuilder:
    """Convert an ``ast`` tree into :class:`SyntaxNode` objects."""

    def __init__(self, unit_id: str, aliases: Dict[str, str]) -> None:
        self._unit_id = unit_id
        self._aliases = aliases

    def build(self, tree: ast.AST) -> SyntaxNode:
        return self._convert(tree, 1)

    def _convert(self, node: ast.AST, line: int) -> SyntaxNode:
        line = getattr(node, "lineno", line)
        handler = getattr(self, f"_convert_{type(node).__name__}", None)
        if handler is not None:
            return handler(node, line)
        return self._generic(node, line)

    def _node(
        self,
        kind: str,
        line: int,
        attributes: Optional[Dict[str, Any]] = None,
        children: Optional[Dict[str, Tuple[SyntaxNode, ...]]] = None,
    ) -> SyntaxNode:
        return SyntaxNode(
            kind=kind,
            line=line,
            unit_id=self._unit_id,
            attributes=MappingProxyType(attributes or {}),
            children=MappingProxyType(children or {}),
        )

    def _generic(self, node: ast.AST, line: int, kind: Optional[str] = None, **attributes: Any) -> SyntaxNode:
        children: Dict[str, Tuple[SyntaxNode, ...]] = {}
        for name, value in ast.iter_fields(node):
            if isinstance(value, ast.AST):
                if not isinstance(value, _SKIPPED_NODES):
                    children[name] = (self._convert(value, line),)
            elif isinstance(value, list):
                nodes = tuple(
                    self._convert(item, line)
                    for item in value
                    if isinstance(item, ast.AST) and not isinstance(item, _SKIPPED_NODES)
                )
                if nodes:
                    children[name] = nodes
            elif isinstance(value, (str, int, float, bool)) or value is None:
                attributes.setdefault(name, value)
        return self._node(kind or type(node).__name__, line, attributes, children)

    # ------------------------------------------------------------------
    # Name resolution
    # ------------------------------------------------------------------
    def _dotted(self, node: ast.AST) -> Optional[str]:
        """Return the alias-resolved dotted name of a Name/Attribute chain."""

        parts: List[str] = []
        while isinstance(node, ast.Attribute):
            parts.append(node.attr)
            node = node.value
        if not isinstance(node, ast.Name):
            return None
        parts.append(self._aliases.get(node.id, node.id))
        return ".".join(reversed(parts))

    # ------------------------------------------------------------------
    # Shaped node kinds
    # ------------------------------------------------------------------
    def _convert_Import(self, node: ast.Import, line: int) -> SyntaxNode:
        modules = tuple(alias.name for alias in node.names)
        return self._node("Import", line, {"modules": modules, "module": None})

    def _convert_ImportFrom(self, node: ast.ImportFrom, line: int) -> SyntaxNode:
        base = _import_from_base(node)
        modules = tuple(f"{base}.{alias.name}" if base else alias.name for alias in node.names)
        return self._node("Import", line, {"modules": modules, "module": base})

    def _convert_Call(self, node: ast.Call, line: int) -> SyntaxNode:
        arguments: List[SyntaxNode] = []
        for arg in node.args:
            value = self._convert(arg, line)
            arguments.append(self._node("Argument", value.line, {"keyword": None}, {"value": (value,)}))
        for keyword in node.keywords:
            value = self._convert(keyword.value, line)
            name = keyword.arg if keyword.arg is not None else "**"
            kw_line = getattr(keyword, "lineno", value.line)
            arguments.append(self._node("Argument", kw_line, {"keyword": name}, {"value": (value,)}))
        children: Dict[str, Tuple[SyntaxNode, ...]] = {"func": (self._convert(node.func, line),)}
        if arguments:
            children["arguments"] = tuple(arguments)
        return self._node("Call", line, {"callee": self._dotted(node.func) or ""}, children)

    def _convert_Assign(self, node: ast.Assign, line: int) -> SyntaxNode:
        children = {
            "targets": tuple(self._convert(target, line) for target in node.targets),
            "value": (self._convert(node.value, line),),
        }
        return self._node("Assignment", line, {"annotated": False}, children)

    def _convert_AnnAssign(self, node: ast.AnnAssign, line: int) -> SyntaxNode:
        children = {"targets": (self._convert(node.target, line),)}
        if node.value is not None:
            children["value"] = (self._convert(node.value, line),)
        return self._node("Assignment", line, {"annotated": True}, children)

    def _convert_ExceptHandler(self, node: ast.ExceptHandler, line: int) -> SyntaxNode:
        type_name = ""
        if node.type is not None:
            type_name = self._dotted(node.type) or ast.unparse(node.type)
        return self._generic(node, line, kind="ExceptHandler", type=type_name)

    def _convert_Expr(self, node: ast.Expr, line: int) -> SyntaxNode:
        return self._node("Expression", line, {}, {"value": (self._convert(node.value, line),)})

    def _convert_Constant(self, node: ast.Constant, line: int) -> SyntaxNode:
        if isinstance(node.value, str):
            return self._node("StringLiteral", line, {"value": node.value})
        return self._node("Literal", line, {"value": node.value})

    def _convert_Name(self, node: ast.Name, line: int) -> SyntaxNode:
        return self._node("Name", line, {"id": node.id, "qualified": self._aliases.get(node.id, node.id)})

    def _convert_Attribute(self, node: ast.Attribute, line: int) -> SyntaxNode:
        attributes = {"attr": node.attr, "name": self._dotted(node) or ""}
        return self._node("Attribute", line, attributes, {"value": (self._convert(node.value, line),)})
