"""User-configured regex rules scanned over raw contract source.

Custom rules work on text rather than the syntax tree, so they also report
matches in files that do not parse. A pattern that fails to compile is
logged and skipped; the remaining rules still run.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator

from sanctifier.core.analyzer.models import CustomRuleMatch, Finding
from sanctifier.core.config import CustomRule
from sanctifier.core.rules.base import Rule
from sanctifier.parsers.nodes import SyntaxTree

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str, owner: str) -> re.Pattern[str] | None:
    """Compile ``pattern``, logging and returning ``None`` when it is invalid."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.warning("Skipping invalid pattern for %s: %s", owner, exc)
        return None


def iter_pattern_matches(regex: re.Pattern[str], source: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line, snippet)`` for every match of ``regex`` in ``source``.

    ``line`` is 1-based; ``snippet`` is the stripped text from the start of
    the first matched line to the end of the last matched line.
    """
    for match in regex.finditer(source):
        start, end = match.start(), match.end()
        line = source.count("\n", 0, start) + 1
        line_start = source.rfind("\n", 0, start) + 1
        line_end = source.find("\n", end)
        if line_end == -1:
            line_end = len(source)
        yield line, source[line_start:line_end].strip()


def scan_custom_rules(source: str, rules: Iterable[CustomRule]) -> list[CustomRuleMatch]:
    """Return every match of every valid custom rule, rule by rule."""
    matches: list[CustomRuleMatch] = []
    for rule in rules:
        regex = compile_pattern(rule.pattern, f"custom rule {rule.name!r}")
        if regex is None:
            continue
        for line, snippet in iter_pattern_matches(regex, source):
            matches.append(CustomRuleMatch(
                rule_name=rule.name, line=line, snippet=snippet, severity=rule.severity,
            ))
    return matches


class CustomPatternRule(Rule):
    """Adapts one ``CustomRule`` to the rule registry."""

    def __init__(self, rule: CustomRule) -> None:
        self.rule = rule
        self.name = rule.name
        self.description = f"Custom pattern rule: {rule.pattern}"

    def scan_source(self, source: str) -> list[CustomRuleMatch]:
        """Match this rule against raw source text, parsed or not."""
        return scan_custom_rules(source, [self.rule])

    def scan(self, tree: SyntaxTree | None) -> list[CustomRuleMatch]:
        if tree is None:
            return []
        return self.scan_source(tree.source)

    def to_findings(self, records: list[CustomRuleMatch]) -> list[Finding]:
        return [
            Finding(
                rule_name=self.name,
                severity=match.severity,
                message=f"Custom rule '{match.rule_name}' matched: {match.snippet}",
                location=f"line {match.line}",
            )
            for match in records
        ]
