"""Tests for the Rich output helpers."""

from __future__ import annotations

from sanctifier.cli.output import (
    print_benchmark,
    print_gas_report,
    print_project_report,
    print_rules,
    severity_style,
)
from sanctifier.core.analyzer import Severity
from sanctifier.core.analyzer.engine import analyze, analyze_sources, build_registry
from sanctifier.core.config import AnalysisConfig
from sanctifier.core.gas import GasEstimationReport, GasReport
from sanctifier.core.prover import SmtLatencyBenchmarkReport, SmtProofStrategy, SmtStrategyLatency


class TestSeverityStyle:
    def test_styles(self) -> None:
        assert severity_style(Severity.ERROR) == "bold red"
        assert severity_style(Severity.WARNING) == "yellow"
        assert severity_style(Severity.INFO) == "cyan"


class TestPrintProjectReport:
    """Tables and the summary line."""

    def test_findings_and_summary(self, capsys, vulnerable_source: str) -> None:
        print_project_report(analyze_sources([("t.rs", vulnerable_source)]))
        out = capsys.readouterr().out
        assert "Sanctifier Findings" in out
        assert "Vulnerability Database Matches (db 1.0.0)" in out
        assert "8 findings" in out
        assert "critical" in out

    def test_clean(self, capsys, clean_source: str) -> None:
        print_project_report(analyze_sources([("v.rs", clean_source)]))
        out = capsys.readouterr().out
        assert "No rule findings." in out
        assert "no critical or high issues" in out

    def test_unparsed_file_notice(self, capsys) -> None:
        print_project_report(analyze_sources([("b.rs", "pub fn broken( {")]))
        assert "Could not parse b.rs" in capsys.readouterr().out

    def test_proofs_table(self, capsys, vulnerable_source: str) -> None:
        config = AnalysisConfig(prove_overflow=True, solver_timeout_ms=2000)
        print_project_report(analyze_sources([("t.rs", vulnerable_source)], config))
        out = capsys.readouterr().out
        assert "Overflow Proofs (Z3)" in out
        assert "proved_unsafe" in out

    def test_high_without_critical(self, capsys) -> None:
        report = analyze_sources([("a.rs", "pub fn f(a: u32) -> u32 { a + 1 }")])
        assert not report.has_critical and report.has_high
        print_project_report(report)
        assert "high" in capsys.readouterr().out.splitlines()[-1]


class TestPrintGasReport:
    def test_empty(self, capsys) -> None:
        print_gas_report(GasReport())
        assert "No public contract functions found." in capsys.readouterr().out

    def test_entries_and_totals(self, capsys) -> None:
        print_gas_report(GasReport.from_estimations([GasEstimationReport("swap", 120_000, 512)]))
        out = capsys.readouterr().out
        assert "swap" in out
        assert "High" in out
        assert "Total: 120000 instructions, 512 bytes" in out


class TestPrintRules:
    def test_rules_table(self, capsys) -> None:
        print_rules(build_registry())
        out = capsys.readouterr().out
        assert "Registered Rules" in out
        assert "unhandled_result" in out


class TestPrintBenchmark:
    def test_slowest_first(self, capsys) -> None:
        report = SmtLatencyBenchmarkReport(2, [
            SmtStrategyLatency(SmtProofStrategy.SMALL_DOMAIN_OVERFLOW, 2, 1, 2, 1, 2),
            SmtStrategyLatency(SmtProofStrategy.UNCONSTRAINED_OVERFLOW, 2, 50, 90, 70, 90),
        ])
        print_benchmark(report)
        out = capsys.readouterr().out
        assert "2 iterations per strategy" in out
        assert out.index("unconstrained_overflow") < out.index("small_domain_overflow")


def test_analyze_report_prints_without_error(capsys, router_source: str) -> None:
    project = analyze_sources([("router.rs", router_source)])
    assert project.reports[0].call_edges == analyze(router_source, file_name="router.rs").call_edges
    print_project_report(project)
    assert "reentrancy" in capsys.readouterr().out
