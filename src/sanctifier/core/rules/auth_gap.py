"""Detects public contract functions that mutate storage without authorization.

A function is flagged when its body contains a storage mutation
(``set``/``update``/``remove`` on a storage receiver) and neither an
authorization call nor a storage read. A ``get`` on the same receiver
family counts as evidence of an access check.
"""

from __future__ import annotations

from sanctifier.core.analyzer.models import Finding, Severity
from sanctifier.core.rules.base import Rule
from sanctifier.parsers.nodes import Call, Function, MacroCall, MethodCall, PathExpr, SyntaxTree
from sanctifier.parsers.visitor import iter_impl_functions, walk

STORAGE_MARKERS: tuple[str, ...] = ("storage", "persistent", "temporary", "instance")
MUTATING_METHODS = frozenset({"set", "update", "remove"})
AUTH_CALLS = frozenset({"require_auth", "require_auth_for_args"})


def _is_storage_receiver(tree: SyntaxTree, call: MethodCall) -> bool:
    receiver = tree.text_of(call.receiver)
    return any(marker in receiver for marker in STORAGE_MARKERS)


def _has_auth_gap(tree: SyntaxTree, fn: Function) -> bool:
    if fn.body is None:
        return False
    has_mutation = has_read = has_auth = False
    for node in walk(fn.body, skip_items=True):
        if isinstance(node, MethodCall):
            if node.method in AUTH_CALLS:
                has_auth = True
            elif node.method in MUTATING_METHODS and _is_storage_receiver(tree, node):
                has_mutation = True
            elif node.method == "get" and _is_storage_receiver(tree, node):
                has_read = True
        elif isinstance(node, Call) and isinstance(node.func, PathExpr):
            if node.func.name in AUTH_CALLS:
                has_auth = True
        elif isinstance(node, MacroCall) and node.name in AUTH_CALLS:
            has_auth = True
    return has_mutation and not has_read and not has_auth


def scan_auth_gaps(tree: SyntaxTree | None) -> list[str]:
    """Return the names of public impl functions with an authorization gap.

    Only methods of impl blocks at the top level of the file are considered.
    """
    if tree is None:
        return []
    return [
        fn.name
        for _, fn in iter_impl_functions(tree)
        if fn.is_pub and _has_auth_gap(tree, fn)
    ]


class AuthGapRule(Rule):
    name = "auth_gap"
    description = (
        "Detects public functions that perform storage mutations without authentication checks"
    )

    def scan(self, tree: SyntaxTree | None) -> list[str]:
        return scan_auth_gaps(tree)

    def to_findings(self, records: list[str]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.WARNING,
                message=f"Function '{fn_name}' performs storage mutation without authentication",
                location=fn_name,
                suggestion="Add require_auth() or require_auth_for_args() before storage operations",
            )
            for fn_name in records
        ]
