"""Detects ``panic!``, ``.unwrap()`` and ``.expect()`` in contract functions.

Every occurrence is reported separately. ``panic!`` aborts unconditionally
and is an Error; ``unwrap``/``expect`` are Warnings.
"""

from __future__ import annotations

from typing import Iterator

from sanctifier.core.analyzer.models import Finding, PanicIssue, Severity
from sanctifier.core.rules.base import Rule
from sanctifier.parsers.nodes import Function, MacroCall, MethodCall, SyntaxTree
from sanctifier.parsers.visitor import iter_impl_functions, iter_top_level_functions, walk

PANIC_METHODS = frozenset({"unwrap", "expect"})


def _contract_functions(tree: SyntaxTree) -> Iterator[Function]:
    for _, fn in iter_impl_functions(tree):
        yield fn
    yield from iter_top_level_functions(tree)


def scan_panics(tree: SyntaxTree | None) -> list[PanicIssue]:
    """Return every panic site in top-level impl methods and free functions."""
    if tree is None:
        return []
    issues: list[PanicIssue] = []
    for fn in _contract_functions(tree):
        if fn.body is None:
            continue
        for node in walk(fn.body, skip_items=True):
            if isinstance(node, MacroCall) and node.name == "panic":
                issue_type = "panic!"
            elif isinstance(node, MethodCall) and node.method in PANIC_METHODS:
                issue_type = node.method
            else:
                continue
            issues.append(PanicIssue(
                function_name=fn.name,
                issue_type=issue_type,
                location=f"{fn.name}:{node.line}",
            ))
    return issues


class PanicDetectionRule(Rule):
    name = "panic_detection"
    description = "Detects panic!, unwrap(), and expect() calls that can cause contract failures"

    def scan(self, tree: SyntaxTree | None) -> list[PanicIssue]:
        return scan_panics(tree)

    def to_findings(self, records: list[PanicIssue]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=Severity.ERROR if issue.issue_type == "panic!" else Severity.WARNING,
                message=f"Use of '{issue.issue_type}' can cause contract failure",
                location=issue.location,
                suggestion="Use Result types and proper error handling instead",
            )
            for issue in records
        ]
