"""Detects function-call results that public contract functions silently drop.

Only public functions that do not themselves return ``Result`` are checked;
inside those, a function-style call (other than ``Ok``, ``Err``, ``Some``,
``None`` and ``panic``) is reported unless it sits under ``?``, a ``match``
or a handling method such as ``unwrap``/``map_err``.

Functions are taken from the file's items, impl blocks and inline modules.
Functions declared inside other function bodies and trait default methods
are not checked.
"""

from __future__ import annotations

from sanctifier.core.analyzer.models import Finding, Severity, UnhandledResultIssue
from sanctifier.core.rules.base import Rule, returns_type
from sanctifier.parsers.nodes import (
    Assign,
    Block,
    BlockExpr,
    Call,
    Expr,
    ExprStmt,
    Function,
    If,
    Impl,
    Let,
    Match,
    MethodCall,
    PathExpr,
    Stmt,
    SyntaxTree,
    Try,
)
from sanctifier.parsers.visitor import iter_items

HANDLING_METHODS = frozenset({
    "unwrap", "expect", "unwrap_or", "unwrap_or_else", "unwrap_or_default",
    "ok", "err", "is_ok", "is_err", "map", "map_err", "and_then", "or_else",
    "unwrap_unchecked", "expect_unchecked",
})
NON_RESULT_CALLS = frozenset({"Ok", "Err", "Some", "None", "panic"})
MAX_EXPR_TEXT = 80


def _is_handled(expr: Expr) -> bool:
    if isinstance(expr, (Try, Match)):
        return True
    if isinstance(expr, MethodCall):
        return expr.method in HANDLING_METHODS
    if isinstance(expr, Assign):
        return _is_handled(expr.value)
    if isinstance(expr, Call) and isinstance(expr.func, PathExpr):
        return expr.func.name in ("Ok", "Err")
    return False


def _shorten(text: str) -> str:
    if len(text) > MAX_EXPR_TEXT:
        return text[:MAX_EXPR_TEXT - 3] + "..."
    return text


class _ResultChecker:
    """Collects unhandled-result issues for one function."""

    def __init__(self, tree: SyntaxTree, fn: Function) -> None:
        self.tree = tree
        self.fn = fn
        self.issues: list[UnhandledResultIssue] = []

    def check_block(self, block: Block, returns_result: bool) -> None:
        for stmt in block.stmts:
            self.check_stmt(stmt, returns_result)

    def check_stmt(self, stmt: Stmt, returns_result: bool) -> None:
        if isinstance(stmt, ExprStmt):
            self.check_expr(stmt.expr, returns_result)
        elif isinstance(stmt, Let) and stmt.init is not None:
            self.check_expr(stmt.init, returns_result)

    def check_expr(self, expr: Expr, returns_result: bool) -> None:
        if isinstance(expr, Call):
            if _is_handled(expr):
                return
            if (
                isinstance(expr.func, PathExpr)
                and expr.func.name not in NON_RESULT_CALLS
                and not returns_result
                and self.fn.is_pub
            ):
                text = _shorten(self.tree.text_of(expr))
                self.issues.append(UnhandledResultIssue(
                    function_name=self.fn.name,
                    message=f"Result returned from '{text}' is not handled",
                    location=f"{self.fn.name}:{expr.line}",
                ))
            for arg in expr.args:
                self.check_expr(arg, returns_result)
        elif isinstance(expr, MethodCall):
            # Receiver chains are walked iteratively; a handled call hides its receiver.
            chain: list[MethodCall] = []
            current: Expr = expr
            while isinstance(current, MethodCall):
                chain.append(current)
                if _is_handled(current):
                    break
                current = current.receiver
            else:
                self.check_expr(current, returns_result)
            for call in reversed(chain):
                for arg in call.args:
                    self.check_expr(arg, returns_result)
        elif isinstance(expr, Try):
            self.check_expr(expr.operand, True)
        elif isinstance(expr, Match):
            for arm in expr.arms:
                self.check_expr(arm.body, returns_result)
        elif isinstance(expr, If):
            branch: Expr | None = expr
            while isinstance(branch, If):
                self.check_expr(branch.condition, returns_result)
                self.check_block(branch.then_branch, returns_result)
                branch = branch.else_branch
            if branch is not None:
                self.check_expr(branch, returns_result)
        elif isinstance(expr, BlockExpr):
            self.check_block(expr.block, returns_result)
        elif isinstance(expr, Assign):
            self.check_expr(expr.value, returns_result)


def _checked_functions(tree: SyntaxTree) -> list[Function]:
    functions: list[Function] = []
    for item in iter_items(tree):
        if isinstance(item, Function):
            functions.append(item)
        elif isinstance(item, Impl):
            functions.extend(member for member in item.items if isinstance(member, Function))
    return functions


def scan_unhandled_results(tree: SyntaxTree | None) -> list[UnhandledResultIssue]:
    if tree is None:
        return []
    issues: list[UnhandledResultIssue] = []
    for fn in _checked_functions(tree):
        if fn.body is None or not fn.is_pub:
            continue
        checker = _ResultChecker(tree, fn)
        checker.check_block(fn.body, returns_type(fn, "Result"))
        issues.extend(checker.issues)
    return issues


class UnhandledResultRule(Rule):
    name = "unhandled_result"
    description = "Detects unhandled Result types in public contract functions"

    def scan(self, tree: SyntaxTree | None) -> list[UnhandledResultIssue]:
        return scan_unhandled_results(tree)

    def to_findings(self, records: list[UnhandledResultIssue]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.WARNING,
                message=issue.message,
                location=issue.location,
                suggestion="Use ?, match, or .unwrap()/.expect() to handle the Result",
            )
            for issue in records
        ]
