"""Tests for the per-file analysis engine and project reports."""

from __future__ import annotations

import json

import pytest

from sanctifier import REPORT_FORMAT, __version__
from sanctifier.core.analyzer import engine
from sanctifier.core.analyzer.engine import AnalysisReport, ProjectReport, analyze, analyze_sources
from sanctifier.core.config import AnalysisConfig, CustomRule
from sanctifier.core.gas import GasEstimator
from sanctifier.core.prover import OverflowProver, ProofOutcome
from sanctifier.core.rules import ReentrancyRule, auth_gap, panic_detection, reentrancy
from sanctifier.core.vulndb import VulnDatabase

UNPARSEABLE = "pub fn broken( {\n    unsafe { call() }\n"

SUMMARY_KEYS = {
    "total_findings",
    "storage_collisions",
    "auth_gaps",
    "panic_issues",
    "arithmetic_issues",
    "size_warnings",
    "reentrancy_issues",
    "unhandled_results",
    "custom_rule_matches",
    "vulnerability_db_matches",
    "has_critical",
    "has_high",
}


class TestAnalyze:
    """One file through every detector."""

    def test_vulnerable_token(self, vulnerable_source: str) -> None:
        report = analyze(vulnerable_source, file_name="token/src/lib.rs")
        assert report.parsed
        assert report.auth_gaps == ["burn"]
        assert [(p.issue_type, p.location) for p in report.panic_issues] == [
            ("unwrap", "mint:13"),
            ("panic!", "burn:20"),
        ]
        assert [a.location for a in report.arithmetic_issues] == ["mint:14"]
        assert len(report.storage_collisions) == 4
        assert report.reentrancy_issues == []
        assert report.unhandled_results == []
        assert [(m.vuln_id, m.line) for m in report.vuln_matches] == [("SOL-004", 18)]
        assert report.has_critical and report.has_high
        assert report.total_findings == 8

    def test_findings_grouped_by_rule(self, vulnerable_source: str) -> None:
        report = analyze(vulnerable_source)
        assert list(report.findings) == [
            "auth_gap",
            "ledger_size",
            "panic_detection",
            "arithmetic_overflow",
            "unhandled_result",
            "storage_collision",
            "reentrancy",
        ]
        assert len(report.all_findings) == 8

    def test_clean_vault(self, clean_source: str) -> None:
        report = analyze(clean_source, file_name="vault.rs")
        assert report.total_findings == 0
        assert report.vuln_matches == []
        assert not report.has_critical and not report.has_high
        assert [e.function_name for e in report.gas_report.entries] == ["init", "balance"]

    def test_router_call_edges(self, router_source: str) -> None:
        report = analyze(router_source, file_name="router.rs")
        assert [(e.caller, e.callee, e.function) for e in report.call_edges] == [
            ("Router", "Token", "transfer"),
            ("Router", "pool", "swap"),
        ]
        assert [r.location for r in report.reentrancy_issues] == ["fn route"]
        assert [u.location for u in report.unhandled_results] == ["route:10"]

    def test_caller_falls_back_to_file_stem(self) -> None:
        source = 'fn f(env: Env, a: Address) { env.invoke_contract::<()>(&a, &symbol_short!("go"), v); }'
        report = analyze(source, file_name="contracts/escrow.rs")
        assert [e.caller for e in report.call_edges] == ["escrow"]

    def test_unparseable_source(self) -> None:
        report = analyze(
            UNPARSEABLE,
            AnalysisConfig(custom_rules=(CustomRule("calls", r"call\(\)"),)),
            file_name="broken.rs",
        )
        assert not report.parsed
        assert [(m.vuln_id, m.line) for m in report.vuln_matches] == [("SOL-006", 2)]
        assert [(m.rule_name, m.line) for m in report.custom_rule_matches] == [("calls", 2)]
        assert [(f.rule_name, f.location) for f in report.all_findings] == [("calls", "line 2")]
        assert report.call_edges == []

    def test_custom_vuln_db(self, vulnerable_source: str) -> None:
        db = VulnDatabase.from_dict({"version": "9", "vulnerabilities": []})
        report = analyze(vulnerable_source, vuln_db=db)
        assert report.vuln_matches == []
        assert report.vuln_db_version == "9"

    def test_prover_runs_only_when_enabled(self, vulnerable_source: str) -> None:
        assert analyze(vulnerable_source).proofs == []
        report = analyze(
            vulnerable_source,
            AnalysisConfig(prove_overflow=True, solver_timeout_ms=2000),
            prover=OverflowProver(2000),
        )
        assert [(p.location, p.outcome) for p in report.proofs] == [("mint:14", ProofOutcome.PROVED_UNSAFE)]
        assert report.proofs[0].bounds.type_name == "u64"

    def test_only_additions_are_proved(self) -> None:
        report = analyze(
            "fn f(a: u8, b: u8) -> u8 { a * b }",
            AnalysisConfig(prove_overflow=True, solver_timeout_ms=2000),
        )
        assert len(report.arithmetic_issues) == 1
        assert report.proofs == []


class TestSingleScan:
    """Each detector runs once per file; findings come from the same records."""

    @pytest.mark.parametrize(
        ("module", "function", "rule_name"),
        [
            (auth_gap, "scan_auth_gaps", "auth_gap"),
            (panic_detection, "scan_panics", "panic_detection"),
            (reentrancy, "scan_reentrancy", "reentrancy"),
        ],
    )
    def test_detector_runs_once(
        self, monkeypatch: pytest.MonkeyPatch, vulnerable_source: str, module, function: str, rule_name: str
    ) -> None:
        real = getattr(module, function)
        calls: list[str] = []

        def counting(tree):
            calls.append(rule_name)
            return real(tree)

        monkeypatch.setattr(module, function, counting)
        analyze(vulnerable_source)
        assert calls == [rule_name]

    def test_findings_match_records(self, vulnerable_source: str) -> None:
        report = analyze(vulnerable_source)
        assert [f.location for f in report.findings["auth_gap"]] == report.auth_gaps
        assert [f.location for f in report.findings["panic_detection"]] == [
            p.location for p in report.panic_issues
        ]
        assert [f.location for f in report.findings["storage_collision"]] == [
            s.location for s in report.storage_collisions
        ]


class TestStepFailures:
    """A failing step empties its own result and is recorded."""

    def test_failing_rule_leaves_the_others(
        self, monkeypatch: pytest.MonkeyPatch, vulnerable_source: str, caplog
    ) -> None:
        def crash(self, tree):
            raise RuntimeError("walker crashed")

        monkeypatch.setattr(ReentrancyRule, "scan", crash)
        report = analyze(vulnerable_source, file_name="token.rs")
        assert report.reentrancy_issues == []
        assert report.findings["reentrancy"] == []
        assert report.auth_gaps == ["burn"]
        assert report.has_critical
        assert report.failed
        assert report.errors == ["reentrancy: RuntimeError: walker crashed"]
        assert report.to_dict()["errors"] == report.errors
        assert "reentrancy failed on token.rs: walker crashed" in caplog.text

    def test_failing_gas_estimate(self, monkeypatch: pytest.MonkeyPatch, clean_source: str) -> None:
        def crash(self, tree):
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr(GasEstimator, "estimate", crash)
        report = analyze(clean_source)
        assert report.gas_report.entries == []
        assert report.errors == ["gas: RecursionError: maximum recursion depth exceeded"]

    def test_clean_run_has_no_errors(self, vulnerable_source: str) -> None:
        report = analyze(vulnerable_source)
        assert report.errors == []
        assert not report.failed


class TestLongChains:
    """Left-associative chains far deeper than the interpreter stack."""

    def test_long_sum(self) -> None:
        source = "pub fn total(a: u64) -> u64 { " + " + ".join(["a"] * 1500) + " }"
        report = analyze(source)
        assert report.parsed
        assert report.errors == []
        assert [(a.function_name, a.operation) for a in report.arithmetic_issues] == [("total", "+")]

    def test_long_method_chain(self) -> None:
        source = "pub fn build(b: Builder) -> Builder { b" + ".with(1)" * 1500 + " }"
        report = analyze(source)
        assert report.parsed
        assert report.errors == []

    def test_call_edges_past_a_long_chain(self) -> None:
        total = " + ".join(["amount"] * 1500)
        source = (
            "pub struct Router;\n"
            "impl Router {\n"
            "    pub fn route(env: Env, pool: Address, amount: i128) {\n"
            "        let token = TokenClient::new(&env, &pool);\n"
            f"        let sum = {total};\n"
            "        token.transfer(&sum);\n"
            "    }\n"
            "}\n"
        )
        report = analyze(source, file_name="router.rs")
        assert report.errors == []
        assert [(e.caller, e.callee, e.function, e.line) for e in report.call_edges] == [
            ("router", "Token", "transfer", 6),
        ]

    def test_critical_findings_survive_a_long_chain(self) -> None:
        total = " + ".join(["a"] * 1500)
        source = (
            "#[contractimpl]\n"
            "impl Vault {\n"
            "    pub fn wipe(env: Env, a: u64) -> u64 {\n"
            "        env.storage().persistent().remove(&KEY);\n"
            "        if a == 0 { panic!(\"empty\"); }\n"
            f"        {total}\n"
            "    }\n"
            "}\n"
        )
        report = analyze(source)
        assert report.auth_gaps == ["wipe"]
        assert [p.issue_type for p in report.panic_issues] == ["panic!"]
        assert report.has_critical


class TestCustomRulesOnUnparsedFiles:
    def test_findings_agree_with_matches(self) -> None:
        config = AnalysisConfig(custom_rules=(CustomRule("unsafe_block", r"unsafe \{"),))
        report = analyze(UNPARSEABLE, config)
        assert not report.parsed
        assert [m.line for m in report.custom_rule_matches] == [2]
        assert [f.location for f in report.findings["unsafe_block"]] == ["line 2"]


class TestReportSerialization:
    def test_to_dict_shape(self, vulnerable_source: str) -> None:
        data = analyze(vulnerable_source, file_name="token.rs").to_dict()
        assert set(data) == {
            "metadata",
            "error_codes",
            "summary",
            "findings",
            "vulnerability_db_version",
            "proofs",
            "call_edges",
            "gas_report",
            "errors",
        }
        assert data["metadata"]["version"] == __version__
        assert data["metadata"]["format"] == REPORT_FORMAT
        assert data["metadata"]["project_path"] == "token.rs"
        assert set(data["summary"]) == SUMMARY_KEYS
        assert data["summary"]["total_findings"] == 8
        assert data["summary"]["vulnerability_db_matches"] == 1
        assert "S006" not in {code["code"] for code in data["error_codes"]}
        json.dumps(data)

    def test_finding_codes(self, vulnerable_source: str) -> None:
        findings = analyze(vulnerable_source).to_dict()["findings"]
        assert findings["auth_gaps"] == [{"code": "S001", "function": "burn"}]
        assert {f["code"] for f in findings["panic_issues"]} == {"S002"}
        assert findings["arithmetic_issues"][0]["code"] == "S003"
        assert findings["storage_collisions"][0]["code"] == "S005"
        assert findings["vulnerability_db_matches"][0]["code"] == "S010"

    def test_custom_rule_severity_is_a_label(self) -> None:
        report = analyze("fn f() {}", AnalysisConfig(custom_rules=(CustomRule("fn", "fn"),)))
        assert report.to_dict()["findings"]["custom_rules"][0]["severity"] == "warning"

    def test_project_path_override(self, clean_source: str) -> None:
        data = analyze(clean_source, file_name="a.rs").to_dict(project_path="/repo")
        assert data["metadata"]["project_path"] == "/repo"


class TestMerge:
    def test_concatenates_in_order(self, vulnerable_source: str, clean_source: str) -> None:
        token = analyze(vulnerable_source, file_name="token.rs")
        vault = analyze(clean_source, file_name="vault.rs")
        merged = AnalysisReport.merge("project", [token, vault])
        assert merged.file_name == "project"
        assert merged.total_findings == token.total_findings
        assert [e.function_name for e in merged.gas_report.entries] == ["mint", "burn", "init", "balance"]
        assert merged.gas_report.total_instructions == 1377 + 1100 + 1125 + 350

    def test_parsed_flag_is_combined(self, clean_source: str) -> None:
        merged = AnalysisReport.merge("p", [analyze(clean_source), analyze(UNPARSEABLE)])
        assert not merged.parsed


class TestAnalyzeSources:
    """Concurrent fan-out with ordered results."""

    def test_input_order_is_kept(self, vulnerable_source: str, clean_source: str) -> None:
        sources = [("b.rs", clean_source), ("a.rs", vulnerable_source), ("c.rs", UNPARSEABLE)]
        project = analyze_sources(sources, project_path="/proj", max_workers=3)
        assert [r.file_name for r in project.reports] == ["b.rs", "a.rs", "c.rs"]
        assert project.unparsed_files == ["c.rs"]
        assert project.has_critical and project.has_high

    def test_to_dict_counts_files(self, vulnerable_source: str, clean_source: str) -> None:
        project = analyze_sources([("a.rs", vulnerable_source), ("b.rs", clean_source)], project_path="/p")
        data = project.to_dict()
        assert data["metadata"]["project_path"] == "/p"
        assert data["summary"]["files_analyzed"] == 2
        assert data["summary"]["files_unparsed"] == 0
        assert data["summary"]["files_failed"] == 0
        assert data["summary"]["total_findings"] == 8

    def test_failing_file_is_kept_as_failed(self, monkeypatch: pytest.MonkeyPatch, clean_source: str, caplog) -> None:
        real_analyze = engine.analyze

        def flaky(source, config=None, **kwargs):
            if kwargs["file_name"] == "bad.rs":
                raise RuntimeError("disk on fire")
            return real_analyze(source, config, **kwargs)

        monkeypatch.setattr(engine, "analyze", flaky)
        project = analyze_sources([("bad.rs", clean_source), ("good.rs", clean_source)])
        assert [r.file_name for r in project.reports] == ["bad.rs", "good.rs"]
        assert "Analysis of bad.rs failed: disk on fire" in caplog.text
        bad = project.reports[0]
        assert not bad.parsed
        assert bad.errors == ["analysis: RuntimeError: disk on fire"]
        assert project.unparsed_files == ["bad.rs"]
        assert project.failed_files == ["bad.rs"]
        summary = project.to_dict()["summary"]
        assert (summary["files_analyzed"], summary["files_unparsed"], summary["files_failed"]) == (2, 1, 1)
        assert project.to_dict()["errors"] == ["bad.rs: analysis: RuntimeError: disk on fire"]

    def test_empty(self) -> None:
        project = analyze_sources([])
        assert project.reports == []
        assert not project.has_critical
        assert isinstance(project, ProjectReport)
        assert project.to_dict()["summary"]["files_analyzed"] == 0
