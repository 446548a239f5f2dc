"""Detects storage keys that share a value within the same storage scope.

Key occurrences are collected from four constructs:

- string ``const`` items (not impl or trait associated consts),
- ``Symbol::new(env, "literal")``,
- ``symbol_short!("literal")``,
- the first argument of ``get``/``set``/``has``/``remove``/``update``/
  ``try_update`` method calls.

Occurrences are grouped by ``(scope, value)``. The scope is read from the
method-call receiver chain (``instance``, ``persistent``, ``temporary``) and
is ``unknown`` for constants and symbol constructors, so the same value used
under two different scopes never collides. Every occurrence in a bucket of
two or more yields one issue naming the others.
"""

from __future__ import annotations

from dataclasses import dataclass

from sanctifier.core.analyzer.models import Finding, Severity, StorageCollisionIssue
from sanctifier.core.rules.base import Rule, int_literal_value
from sanctifier.parsers.nodes import (
    Call,
    Const,
    Expr,
    Impl,
    Literal,
    MacroCall,
    MethodCall,
    Node,
    Paren,
    PathExpr,
    Reference,
    SyntaxTree,
    Trait,
)
from sanctifier.parsers.visitor import walk

STORAGE_OPS = frozenset({"get", "set", "has", "remove", "update", "try_update"})
STORAGE_SCOPES = ("instance", "persistent", "temporary")
UNKNOWN_SCOPE = "unknown"


@dataclass(frozen=True)
class StorageKeyOccurrence:
    """One place a storage key value is produced or used."""

    value: str
    key_type: str
    scope: str
    location: str
    line: int


def storage_scope(expr: Expr) -> str:
    """Walk a receiver chain and return the storage scope it selects."""
    while True:
        if isinstance(expr, MethodCall):
            if expr.method in STORAGE_SCOPES:
                return expr.method
            expr = expr.receiver
        elif isinstance(expr, Reference):
            expr = expr.operand
        elif isinstance(expr, Paren):
            expr = expr.inner
        else:
            return UNKNOWN_SCOPE


def _key_value(tree: SyntaxTree, expr: Expr) -> str | None:
    while isinstance(expr, (Reference, Paren)):
        expr = expr.operand if isinstance(expr, Reference) else expr.inner
    if isinstance(expr, Literal):
        if expr.kind == "str" or expr.kind == "bool":
            return expr.value
        if expr.kind == "int":
            number = int_literal_value(expr.value)
            return str(number) if number is not None else expr.value
        return None
    if isinstance(expr, (PathExpr, Call, MethodCall, MacroCall)):
        return tree.text_of(expr)
    return None


def _associated_consts(tree: SyntaxTree) -> set[int]:
    ids: set[int] = set()
    for node in walk(tree):
        if isinstance(node, (Impl, Trait)):
            ids.update(id(item) for item in node.items if isinstance(item, Const))
    return ids


def _occurrence(tree: SyntaxTree, node: Node, associated: set[int]) -> StorageKeyOccurrence | None:
    if isinstance(node, Const):
        if id(node) in associated:
            return None
        if isinstance(node.value, Literal) and node.value.kind == "str":
            return StorageKeyOccurrence(
                node.value.value, "const", UNKNOWN_SCOPE, node.name, node.line,
            )
        return None
    if isinstance(node, Call):
        func = node.func
        if (
            isinstance(func, PathExpr)
            and len(func.segments) >= 2
            and func.segments[0] == "Symbol"
            and func.segments[1] == "new"
            and len(node.args) >= 2
            and isinstance(node.args[1], Literal)
            and node.args[1].kind == "str"
        ):
            return StorageKeyOccurrence(
                node.args[1].value, "Symbol::new", UNKNOWN_SCOPE, "inline", node.line,
            )
        return None
    if isinstance(node, MacroCall) and node.name == "symbol_short":
        if node.args and isinstance(node.args[0], Literal) and node.args[0].kind == "str":
            value = node.args[0].value
        else:
            value = node.tokens.strip('"')
        return StorageKeyOccurrence(value, "symbol_short!", UNKNOWN_SCOPE, "inline", node.line)
    if isinstance(node, MethodCall) and node.method in STORAGE_OPS and node.args:
        value = _key_value(tree, node.args[0])
        if value is None:
            return None
        return StorageKeyOccurrence(
            value, f"storage::{node.method}", storage_scope(node.receiver), "storage-op", node.line,
        )
    return None


def collect_storage_keys(tree: SyntaxTree | None) -> dict[tuple[str, str], list[StorageKeyOccurrence]]:
    """Group every key occurrence by ``(scope, value)`` in first-seen order."""
    buckets: dict[tuple[str, str], list[StorageKeyOccurrence]] = {}
    if tree is None:
        return buckets
    associated = _associated_consts(tree)
    for node in walk(tree):
        occurrence = _occurrence(tree, node, associated)
        if occurrence is not None:
            buckets.setdefault((occurrence.scope, occurrence.value), []).append(occurrence)
    return buckets


def scan_storage_collisions(tree: SyntaxTree | None) -> list[StorageCollisionIssue]:
    """Return one issue per occurrence in every bucket holding two or more entries."""
    issues: list[StorageCollisionIssue] = []
    for (scope, value), entries in collect_storage_keys(tree).items():
        if len(entries) < 2:
            continue
        for index, current in enumerate(entries):
            others = ", ".join(
                f"{other.location} (line {other.line})"
                for other_index, other in enumerate(entries)
                if other_index != index
            )
            issues.append(StorageCollisionIssue(
                key_value=value,
                key_type=f"{current.key_type} ({scope})",
                location=f"{current.location}:{current.line}",
                message=(
                    f"Potential {scope} storage key collision: value '{value}' "
                    f"is also used in: {others}"
                ),
            ))
    return issues


class StorageCollisionRule(Rule):
    name = "storage_collision"
    description = "Detects storage keys that reuse the same value within one storage scope"

    def scan(self, tree: SyntaxTree | None) -> list[StorageCollisionIssue]:
        return scan_storage_collisions(tree)

    def to_findings(self, records: list[StorageCollisionIssue]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.WARNING,
                message=issue.message,
                location=issue.location,
                suggestion="Use distinct key values or a #[contracttype] key enum",
            )
            for issue in records
        ]
