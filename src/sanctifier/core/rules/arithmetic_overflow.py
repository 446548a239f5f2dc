"""Detects unchecked ``+``, ``-``, ``*`` and their compound assignments.

Each ``(function, operator)`` pair is reported once, at the line of the left
operand of its first occurrence. Operations with a string-literal operand
are ignored. Functions at any depth are scanned (free functions, impl
methods, inline modules, functions declared inside bodies); trait default
methods are not.
"""

from __future__ import annotations

import re

from sanctifier.core.analyzer.models import ArithmeticIssue, Finding, Severity
from sanctifier.core.rules.base import Rule, type_name
from sanctifier.parsers.nodes import (
    Binary,
    Cast,
    Expr,
    Function,
    Let,
    Literal,
    Paren,
    PathExpr,
    ReferenceType,
    SyntaxTree,
    TypeRef,
)
from sanctifier.parsers.visitor import iter_functions, walk

SUGGESTIONS: dict[str, str] = {
    "+": "Use .checked_add(rhs) or .saturating_add(rhs) to handle overflow",
    "-": "Use .checked_sub(rhs) or .saturating_sub(rhs) to handle underflow",
    "*": "Use .checked_mul(rhs) or .saturating_mul(rhs) to handle overflow",
    "+=": 'Replace a += b with a = a.checked_add(b).expect("overflow")',
    "-=": 'Replace a -= b with a = a.checked_sub(b).expect("underflow")',
    "*=": 'Replace a *= b with a = a.checked_mul(b).expect("overflow")',
}

INTEGER_TYPES = frozenset({
    "u8", "u16", "u32", "u64", "u128", "usize",
    "i8", "i16", "i32", "i64", "i128", "isize",
})

_INT_SUFFIX = re.compile(r"(u8|u16|u32|u64|u128|usize|i8|i16|i32|i64|i128|isize)$")

_IDENT_IN_PATTERN = re.compile(r"^(?:mut\s+)?([A-Za-z_][A-Za-z0-9_]*)$")


def _integer_type(type_ref: TypeRef | None) -> str | None:
    if isinstance(type_ref, ReferenceType):
        type_ref = type_ref.inner
    name = type_name(type_ref)
    return name if name in INTEGER_TYPES else None


def _typed_bindings(fn: Function) -> dict[str, str]:
    """Map parameter and ``let`` names to their declared integer type."""
    bindings: dict[str, str] = {}
    for param in fn.params:
        match = _IDENT_IN_PATTERN.match(param.pattern)
        int_type = _integer_type(param.type)
        if match and int_type:
            bindings[match.group(1)] = int_type
    if fn.body is not None:
        for node in walk(fn.body, skip_items=True):
            if isinstance(node, Let) and node.type is not None:
                match = _IDENT_IN_PATTERN.match(node.pattern)
                int_type = _integer_type(node.type)
                if match and int_type:
                    bindings[match.group(1)] = int_type
    return bindings


def _operand_type(expr: Expr, bindings: dict[str, str]) -> str | None:
    while isinstance(expr, Paren):
        expr = expr.inner
    if isinstance(expr, Cast):
        return _integer_type(expr.target)
    if isinstance(expr, Literal) and expr.kind == "int":
        match = _INT_SUFFIX.search(expr.value)
        return match.group(1) if match else None
    if isinstance(expr, PathExpr) and len(expr.segments) == 1:
        return bindings.get(expr.segments[0])
    return None


def _is_string_literal(expr: Expr) -> bool:
    return isinstance(expr, Literal) and expr.kind == "str"


def scan_arithmetic_overflow(tree: SyntaxTree | None) -> list[ArithmeticIssue]:
    """Return one issue per ``(function, operator)`` with unchecked arithmetic."""
    if tree is None:
        return []
    issues: list[ArithmeticIssue] = []
    seen: set[tuple[str, str]] = set()
    for fn in iter_functions(tree):
        if fn.body is None:
            continue
        bindings: dict[str, str] | None = None
        for node in walk(fn.body, skip_items=True):
            if not isinstance(node, Binary) or node.op not in SUGGESTIONS:
                continue
            if _is_string_literal(node.left) or _is_string_literal(node.right):
                continue
            key = (fn.name, node.op)
            if key in seen:
                continue
            seen.add(key)
            if bindings is None:
                bindings = _typed_bindings(fn)
            operand_type = (
                _operand_type(node.left, bindings) or _operand_type(node.right, bindings)
            )
            issues.append(ArithmeticIssue(
                function_name=fn.name,
                operation=node.op,
                suggestion=SUGGESTIONS[node.op],
                location=f"{fn.name}:{node.line}",
                line=node.line,
                operand_type=operand_type,
            ))
    return issues


class ArithmeticOverflowRule(Rule):
    name = "arithmetic_overflow"
    description = "Detects unchecked arithmetic operations that could overflow or underflow"

    def scan(self, tree: SyntaxTree | None) -> list[ArithmeticIssue]:
        return scan_arithmetic_overflow(tree)

    def to_findings(self, records: list[ArithmeticIssue]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.WARNING,
                message=f"Unchecked '{issue.operation}' operation could overflow",
                location=issue.location,
                suggestion=issue.suggestion,
            )
            for issue in records
        ]
