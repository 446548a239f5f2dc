"""Tests for RuleRegistry and the default rule set."""

from __future__ import annotations

from sanctifier.core.analyzer import Finding, Severity
from sanctifier.core.analyzer.engine import build_registry
from sanctifier.core.config import AnalysisConfig, CustomRule
from sanctifier.core.rules import AuthGapRule, Rule, RuleRegistry, default_registry
from sanctifier.parsers import SyntaxTree

BUILTIN = [
    "auth_gap",
    "ledger_size",
    "panic_detection",
    "arithmetic_overflow",
    "unhandled_result",
    "storage_collision",
]


class AlwaysRule(Rule):
    name = "always"
    description = "Reports one finding per parsed file"

    def scan(self, tree: SyntaxTree | None) -> list[str]:
        return [] if tree is None else ["file"]

    def to_findings(self, records: list[str]) -> list[Finding]:
        return [Finding(self.name, Severity.INFO, "seen", where) for where in records]


class TestRuleRegistry:
    """Registration order and lookups."""

    def test_empty(self) -> None:
        registry = RuleRegistry()
        assert len(registry) == 0
        assert registry.available_rules() == []

    def test_register_and_run(self, parse_rust) -> None:
        registry = RuleRegistry()
        registry.register(AlwaysRule())
        tree = parse_rust("fn f() {}")
        assert [f.message for f in registry.run_all(tree)] == ["seen"]
        assert registry.run_all(None) == []

    def test_run_by_name(self, parse_rust, vulnerable_source: str) -> None:
        registry = default_registry()
        tree = parse_rust(vulnerable_source)
        assert [f.location for f in registry.run_by_name(tree, "auth_gap")] == ["burn"]
        assert registry.run_by_name(tree, "missing") == []

    def test_repr(self) -> None:
        assert repr(AuthGapRule()) == "AuthGapRule(name='auth_gap')"


class TestDefaultRegistry:
    def test_builtin_order(self) -> None:
        assert default_registry().available_rules() == BUILTIN

    def test_custom_rules_are_appended(self) -> None:
        config = AnalysisConfig(custom_rules=(CustomRule("no_unsafe", "unsafe"), CustomRule("todo", "TODO")))
        assert default_registry(config).available_rules() == BUILTIN + ["no_unsafe", "todo"]

    def test_run_all_groups_by_rule(self, parse_rust, vulnerable_source: str) -> None:
        findings = default_registry().run_all(parse_rust(vulnerable_source))
        assert [f.rule_name for f in findings] == [
            "auth_gap",
            "panic_detection",
            "panic_detection",
            "arithmetic_overflow",
        ] + ["storage_collision"] * 4

    def test_clean_contract_has_no_findings(self, parse_rust, clean_source: str) -> None:
        assert default_registry().run_all(parse_rust(clean_source)) == []

    def test_engine_registry_adds_reentrancy(self) -> None:
        assert build_registry().available_rules() == BUILTIN + ["reentrancy"]

    def test_check_is_scan_then_to_findings(self, parse_rust, vulnerable_source: str) -> None:
        tree = parse_rust(vulnerable_source)
        for rule in build_registry().rules:
            assert rule.check(tree) == rule.to_findings(rule.scan(tree))
