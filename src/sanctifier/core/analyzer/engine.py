"""Per-file analysis engine and project-level report merging.

``analyze()`` parses a source file once and shares the tree with every
detector, the gas estimator and the call-graph extractor. The vulnerability
database and custom pattern rules run on the raw text, so a file that fails
to parse still gets those two scans. When the configuration enables it, each
flagged addition is handed to the Z3 overflow prover.

``analyze_sources()`` fans files out over a thread pool and merges the
per-file reports, in input order, into a ``ProjectReport``.

Usage::

    report = analyze(source, load_config(path), file_name=str(path))
    if report.has_critical:
        ...
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Iterable, TypeVar

from sanctifier import REPORT_FORMAT, __version__
from sanctifier.core.analyzer import finding_codes
from sanctifier.core.analyzer.models import (
    ArithmeticIssue,
    CustomRuleMatch,
    Finding,
    PanicIssue,
    ReentrancyIssue,
    SizeWarning,
    StorageCollisionIssue,
    UnhandledResultIssue,
    record_to_dict,
)
from sanctifier.core.callgraph import CallEdge, infer_contract_name, scan_invoke_contract_calls
from sanctifier.core.config import AnalysisConfig
from sanctifier.core.gas import GasEstimator, GasReport
from sanctifier.core.prover import AdditionBounds, OverflowProver, ProofOutcome, ProofResult
from sanctifier.core.rules import CustomPatternRule, ReentrancyRule, RuleRegistry, default_registry
from sanctifier.core.vulndb import VulnDatabase, VulnMatch
from sanctifier.parsers import parse_source

logger = logging.getLogger(__name__)

ADDITION_OPERATIONS = frozenset({"+", "+="})
DEFAULT_MAX_WORKERS = 4

_T = TypeVar("_T")


# ---------------------------------------------------------------------------
# AnalysisReport: everything found in one file (or a merged project)
# ---------------------------------------------------------------------------


@dataclass
class AnalysisReport:
    """The complete result of analyzing one source file.

    Attributes:
        file_name: Label of the analyzed file (the project path once merged).
        parsed: False when the source could not be parsed; only the raw-text
            scans ran.
        findings: Rule findings keyed by detector name, in registry order.
        auth_gaps: Names of functions that mutate storage without auth.
        panic_issues: ``panic!``/``unwrap``/``expect`` sites.
        arithmetic_issues: Unchecked arithmetic operations.
        size_warnings: Oversized ``#[contracttype]`` definitions.
        storage_collisions: Storage keys reused within one scope.
        reentrancy_issues: Storage mutations after cross-contract calls.
        unhandled_results: Discarded ``Result`` values.
        custom_rule_matches: Lines matched by configured regex rules.
        vuln_matches: Lines matched by the vulnerability database.
        call_edges: Cross-contract call edges.
        proofs: Overflow proof results for flagged additions.
        gas_report: Instruction and memory estimates of public methods.
        vuln_db_version: Version of the database that was scanned.
        errors: Analysis steps that failed, as ``"step: message"``; a file
            whose analysis failed outright has a single ``"analysis: ..."``
            entry and ``parsed=False``.
    """

    file_name: str
    parsed: bool = True
    findings: dict[str, list[Finding]] = field(default_factory=dict)
    auth_gaps: list[str] = field(default_factory=list)
    panic_issues: list[PanicIssue] = field(default_factory=list)
    arithmetic_issues: list[ArithmeticIssue] = field(default_factory=list)
    size_warnings: list[SizeWarning] = field(default_factory=list)
    storage_collisions: list[StorageCollisionIssue] = field(default_factory=list)
    reentrancy_issues: list[ReentrancyIssue] = field(default_factory=list)
    unhandled_results: list[UnhandledResultIssue] = field(default_factory=list)
    custom_rule_matches: list[CustomRuleMatch] = field(default_factory=list)
    vuln_matches: list[VulnMatch] = field(default_factory=list)
    call_edges: list[CallEdge] = field(default_factory=list)
    proofs: list[ProofResult] = field(default_factory=list)
    gas_report: GasReport = field(default_factory=GasReport)
    vuln_db_version: str = ""
    errors: list[str] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        """Any auth gap or explicit ``panic!``."""
        return bool(self.auth_gaps) or any(p.issue_type == "panic!" for p in self.panic_issues)

    @property
    def has_high(self) -> bool:
        """Any arithmetic issue, any panic-kind issue, or an entry over the ledger limit."""
        return (
            bool(self.arithmetic_issues)
            or bool(self.panic_issues)
            or any(w.exceeds for w in self.size_warnings)
        )

    @property
    def failed(self) -> bool:
        """True when any analysis step raised, so some findings may be missing."""
        return bool(self.errors)

    @property
    def total_findings(self) -> int:
        return (
            len(self.storage_collisions)
            + len(self.size_warnings)
            + len(self.auth_gaps)
            + len(self.panic_issues)
            + len(self.arithmetic_issues)
            + len(self.custom_rule_matches)
            + len(self.reentrancy_issues)
            + len(self.unhandled_results)
        )

    @property
    def all_findings(self) -> list[Finding]:
        """Flattened rule findings, in registry order."""
        return [finding for group in self.findings.values() for finding in group]

    @classmethod
    def merge(cls, file_name: str, reports: Iterable[AnalysisReport]) -> AnalysisReport:
        """Join reports; lists are concatenated in the order given."""
        merged = cls(file_name=file_name)
        gas_reports: list[GasReport] = []
        for report in reports:
            merged.parsed = merged.parsed and report.parsed
            for rule_name, group in report.findings.items():
                merged.findings.setdefault(rule_name, []).extend(group)
            merged.auth_gaps.extend(report.auth_gaps)
            merged.panic_issues.extend(report.panic_issues)
            merged.arithmetic_issues.extend(report.arithmetic_issues)
            merged.size_warnings.extend(report.size_warnings)
            merged.storage_collisions.extend(report.storage_collisions)
            merged.reentrancy_issues.extend(report.reentrancy_issues)
            merged.unhandled_results.extend(report.unhandled_results)
            merged.custom_rule_matches.extend(report.custom_rule_matches)
            merged.vuln_matches.extend(report.vuln_matches)
            merged.call_edges.extend(report.call_edges)
            merged.proofs.extend(report.proofs)
            gas_reports.append(report.gas_report)
            merged.vuln_db_version = merged.vuln_db_version or report.vuln_db_version
            merged.errors.extend(f"{report.file_name}: {error}" for error in report.errors)
        merged.gas_report = GasReport.merge(gas_reports)
        return merged

    def to_dict(self, project_path: str | None = None) -> dict[str, Any]:
        """Serialize to the ``sanctifier-ci-v1`` JSON shape."""
        return {
            "metadata": {
                "version": __version__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "project_path": project_path or self.file_name,
                "format": REPORT_FORMAT,
            },
            "error_codes": [code.to_dict() for code in finding_codes.all_finding_codes()],
            "summary": {
                "total_findings": self.total_findings,
                "storage_collisions": len(self.storage_collisions),
                "auth_gaps": len(self.auth_gaps),
                "panic_issues": len(self.panic_issues),
                "arithmetic_issues": len(self.arithmetic_issues),
                "size_warnings": len(self.size_warnings),
                "reentrancy_issues": len(self.reentrancy_issues),
                "unhandled_results": len(self.unhandled_results),
                "custom_rule_matches": len(self.custom_rule_matches),
                "vulnerability_db_matches": len(self.vuln_matches),
                "has_critical": self.has_critical,
                "has_high": self.has_high,
            },
            "findings": {
                "storage_collisions": _coded(finding_codes.STORAGE_COLLISION, self.storage_collisions),
                "ledger_size_warnings": _coded(finding_codes.LEDGER_SIZE_RISK, self.size_warnings),
                "auth_gaps": [
                    {"code": finding_codes.AUTH_GAP, "function": name} for name in self.auth_gaps
                ],
                "panic_issues": _coded(finding_codes.PANIC_USAGE, self.panic_issues),
                "arithmetic_issues": _coded(finding_codes.ARITHMETIC_OVERFLOW, self.arithmetic_issues),
                "reentrancy_issues": _coded(finding_codes.REENTRANCY, self.reentrancy_issues),
                "unhandled_results": _coded(finding_codes.UNHANDLED_RESULT, self.unhandled_results),
                "custom_rules": _coded(finding_codes.CUSTOM_RULE_MATCH, self.custom_rule_matches),
                "vulnerability_db_matches": [
                    {"code": finding_codes.VULN_DB_MATCH, **match.to_dict()}
                    for match in self.vuln_matches
                ],
            },
            "vulnerability_db_version": self.vuln_db_version,
            "proofs": [proof.to_dict() for proof in self.proofs],
            "call_edges": [edge.to_dict() for edge in self.call_edges],
            "gas_report": self.gas_report.to_dict(),
            "errors": list(self.errors),
        }


def _coded(code: str, records: Iterable[Any]) -> list[dict[str, Any]]:
    return [{"code": code, **record_to_dict(record)} for record in records]


# ---------------------------------------------------------------------------
# ProjectReport: per-file reports joined for a whole analysis run
# ---------------------------------------------------------------------------


@dataclass
class ProjectReport:
    """Reports for every analyzed file, in input order."""

    project_path: str
    reports: list[AnalysisReport] = field(default_factory=list)

    @property
    def combined(self) -> AnalysisReport:
        return AnalysisReport.merge(self.project_path, self.reports)

    @property
    def has_critical(self) -> bool:
        return any(r.has_critical for r in self.reports)

    @property
    def has_high(self) -> bool:
        return any(r.has_high for r in self.reports)

    @property
    def unparsed_files(self) -> list[str]:
        return [r.file_name for r in self.reports if not r.parsed]

    @property
    def failed_files(self) -> list[str]:
        """Files with at least one failed analysis step."""
        return [r.file_name for r in self.reports if r.failed]

    def to_dict(self) -> dict[str, Any]:
        data = self.combined.to_dict(project_path=self.project_path)
        data["summary"]["files_analyzed"] = len(self.reports)
        data["summary"]["files_unparsed"] = len(self.unparsed_files)
        data["summary"]["files_failed"] = len(self.failed_files)
        return data


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def build_registry(config: AnalysisConfig | None = None) -> RuleRegistry:
    """Return the default registry plus the reentrancy rule, as run by ``analyze``."""
    registry = default_registry(config)
    registry.register(ReentrancyRule())
    return registry


def _prove_additions(
    prover: OverflowProver, issues: list[ArithmeticIssue]
) -> list[ProofResult]:
    proofs: list[ProofResult] = []
    for issue in issues:
        if issue.operation not in ADDITION_OPERATIONS:
            continue
        bounds = AdditionBounds.for_type(issue.operand_type or "u64")
        result = prover.prove_addition(issue.function_name, issue.location, bounds)
        if result.outcome is ProofOutcome.UNKNOWN:
            logger.debug("No proof for %s: %s", issue.location, result.reason)
        proofs.append(result)
    return proofs


_RECORD_FIELDS: dict[str, str] = {
    "auth_gap": "auth_gaps",
    "ledger_size": "size_warnings",
    "panic_detection": "panic_issues",
    "arithmetic_overflow": "arithmetic_issues",
    "unhandled_result": "unhandled_results",
    "storage_collision": "storage_collisions",
    "reentrancy": "reentrancy_issues",
}


def _guarded(report: AnalysisReport, step: str, run: Callable[[], _T], empty: _T) -> _T:
    """Run one analysis step; a failure is logged, recorded and yields ``empty``."""
    try:
        return run()
    except Exception as exc:
        logger.warning("%s failed on %s: %s", step, report.file_name, exc)
        report.errors.append(f"{step}: {type(exc).__name__}: {exc}")
        return empty


def analyze(
    source: str,
    config: AnalysisConfig | None = None,
    *,
    file_name: str = "<source>",
    vuln_db: VulnDatabase | None = None,
    prover: OverflowProver | None = None,
) -> AnalysisReport:
    """Run every detector over one source file.

    Each rule runs once; its records fill the report's per-detector lists
    and its findings are derived from the same records. A detector that
    fails leaves an empty result for itself and a message in ``errors``;
    the other detectors still run.

    Args:
        source: Contract source text.
        config: Analysis settings; defaults apply when omitted.
        file_name: Label used in vulnerability matches and call edges.
        vuln_db: Database to scan with; the packaged one when omitted.
        prover: Overflow prover to use when ``config.prove_overflow`` is set.

    Returns:
        An ``AnalysisReport``. Unparseable source yields a report with
        ``parsed=False`` that still carries raw-text matches.
    """
    config = config or AnalysisConfig()
    vuln_db = vuln_db or VulnDatabase.load_default()
    tree = parse_source(source)
    if tree is None:
        logger.debug("Could not parse %s; running raw-text scans only", file_name)

    report = AnalysisReport(
        file_name=file_name,
        parsed=tree is not None,
        vuln_db_version=vuln_db.version,
    )
    for rule in build_registry(config).rules:
        if isinstance(rule, CustomPatternRule):
            # Custom rules read the raw text, so unparsed files are matched too.
            records = _guarded(report, rule.name, partial(rule.scan_source, source), [])
            report.custom_rule_matches.extend(records)
        else:
            records = _guarded(report, rule.name, partial(rule.scan, tree), [])
            getattr(report, _RECORD_FIELDS[rule.name]).extend(records)
        report.findings.setdefault(rule.name, []).extend(rule.to_findings(records))

    report.vuln_matches = _guarded(report, "vulnerability_db", partial(vuln_db.scan, source, file_name), [])
    estimates = _guarded(report, "gas", partial(GasEstimator().estimate, tree), [])
    report.gas_report = GasReport.from_estimations(estimates)
    if tree is not None:
        caller = infer_contract_name(tree) or _file_stem(file_name)
        report.call_edges = _guarded(
            report, "callgraph", partial(scan_invoke_contract_calls, tree, caller, file_name), [],
        )
    if config.prove_overflow:
        prover = prover or OverflowProver(config.solver_timeout_ms)
        report.proofs = _prove_additions(prover, report.arithmetic_issues)
    return report


def _file_stem(file_name: str) -> str:
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    stem = base.rsplit(".", 1)[0]
    return stem or "<unknown>"


def analyze_sources(
    sources: Iterable[tuple[str, str]],
    config: AnalysisConfig | None = None,
    *,
    project_path: str = ".",
    max_workers: int = DEFAULT_MAX_WORKERS,
    vuln_db: VulnDatabase | None = None,
) -> ProjectReport:
    """Analyze ``(file_name, source)`` pairs concurrently.

    Reports keep the input order. A file whose analysis raises is logged and
    kept as a failed report (``parsed=False`` with the error recorded), so it
    still counts in ``unparsed_files`` and ``failed_files``.
    """
    config = config or AnalysisConfig()
    vuln_db = vuln_db or VulnDatabase.load_default()
    prover = OverflowProver(config.solver_timeout_ms) if config.prove_overflow else None
    items = list(sources)
    project = ProjectReport(project_path=project_path)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [
            (name, pool.submit(analyze, text, config, file_name=name, vuln_db=vuln_db, prover=prover))
            for name, text in items
        ]
        for name, future in futures:
            try:
                project.reports.append(future.result())
            except Exception as exc:
                logger.warning("Analysis of %s failed: %s", name, exc)
                project.reports.append(AnalysisReport(
                    file_name=name,
                    parsed=False,
                    vuln_db_version=vuln_db.version,
                    errors=[f"analysis: {type(exc).__name__}: {exc}"],
                ))
    return project
