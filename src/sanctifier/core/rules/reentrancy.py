"""Checks-Effects-Interactions ordering for contract impl methods.

A method is flagged when a storage mutation (``set``/``update``/``remove``)
executes after a cross-contract call in the same method. Calls are visited
in evaluation order: receivers and arguments before the call that consumes
them. Each method is reported at most once and starts with a clean state.

Cross-contract calls are recognised by name (``invoke_contract``,
``try_invoke_contract``, ``call``, ``try_call``, ``*_client``,
``invoke*``), by a path through a ``*Client`` type (``TokenClient::new``)
and by any method call on a receiver variable named ``*client``.
"""

from __future__ import annotations

from typing import Iterator

from sanctifier.core.analyzer.models import Finding, ReentrancyIssue, Severity
from sanctifier.core.rules.base import Rule
from sanctifier.parsers.nodes import Call, Function, Item, MethodCall, Node, PathExpr, SyntaxTree
from sanctifier.parsers.visitor import iter_child_nodes, iter_impl_functions

CROSS_CALL_NAMES = frozenset({"invoke_contract", "try_invoke_contract", "call", "try_call"})
MUTATING_METHODS = frozenset({"set", "update", "remove"})

ISSUE_TYPE = "CEI violation: storage mutation after cross-contract call"


def is_cross_call_name(name: str) -> bool:
    return name in CROSS_CALL_NAMES or name.endswith("_client") or name.startswith("invoke")


def _is_cross_call(node: Node) -> bool:
    if isinstance(node, MethodCall):
        if is_cross_call_name(node.method):
            return True
        receiver = node.receiver
        return (
            isinstance(receiver, PathExpr)
            and len(receiver.segments) == 1
            and receiver.segments[0].lower().endswith("client")
        )
    if isinstance(node, Call) and isinstance(node.func, PathExpr):
        segments = node.func.segments
        if segments and is_cross_call_name(segments[-1]):
            return True
        return any(segment.endswith("Client") for segment in segments[:-1])
    return False


def _is_mutation(node: Node) -> bool:
    if isinstance(node, MethodCall):
        return node.method in MUTATING_METHODS
    if isinstance(node, Call) and isinstance(node.func, PathExpr):
        return node.func.name in MUTATING_METHODS
    return False


def _evaluation_order(root: Node) -> Iterator[Node]:
    """Yield nodes of a function body children-first, skipping nested items."""
    stack: list[tuple[Node, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            yield node
            continue
        stack.append((node, True))
        children = [c for c in iter_child_nodes(node) if not isinstance(c, Item)]
        stack.extend((child, False) for child in reversed(children))


def _violates_cei(fn: Function) -> bool:
    if fn.body is None:
        return False
    saw_cross_call = False
    for node in _evaluation_order(fn.body):
        if _is_cross_call(node):
            saw_cross_call = True
        elif saw_cross_call and _is_mutation(node):
            return True
    return False


def scan_reentrancy(tree: SyntaxTree | None) -> list[ReentrancyIssue]:
    """Return one issue per top-level impl method that mutates storage after a cross-call."""
    if tree is None:
        return []
    return [
        ReentrancyIssue(function_name=fn.name, issue_type=ISSUE_TYPE, location=f"fn {fn.name}")
        for _, fn in iter_impl_functions(tree)
        if _violates_cei(fn)
    ]


class ReentrancyRule(Rule):
    name = "reentrancy"
    description = "Detects storage mutations that follow a cross-contract call (CEI violations)"

    def scan(self, tree: SyntaxTree | None) -> list[ReentrancyIssue]:
        return scan_reentrancy(tree)

    def to_findings(self, records: list[ReentrancyIssue]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.WARNING,
                message=f"Function '{issue.function_name}' mutates storage after a cross-contract call",
                location=issue.location,
                suggestion="Update contract storage before calling other contracts",
            )
            for issue in records
        ]
