"""Rich output formatting helpers for the Sanctifier CLI.

Provides consistent, severity-colored terminal output for analysis
reports, gas estimates, the rule list and solver benchmarks.

Severity Color Mapping:
    ERROR = bold red, WARNING = yellow, INFO = cyan
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sanctifier.core.analyzer import Severity
from sanctifier.core.analyzer.engine import ProjectReport
from sanctifier.core.gas import GasReport, GasTier
from sanctifier.core.prover import ProofOutcome, SmtLatencyBenchmarkReport
from sanctifier.core.rules import RuleRegistry

_SEVERITY_STYLES: dict[Severity, str] = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}

_TIER_STYLES: dict[GasTier, str] = {
    GasTier.HIGH: "bold red",
    GasTier.MEDIUM: "yellow",
    GasTier.LOW: "green",
}

_OUTCOME_STYLES: dict[ProofOutcome, str] = {
    ProofOutcome.PROVED_UNSAFE: "bold red",
    ProofOutcome.PROVED_SAFE: "green",
    ProofOutcome.UNKNOWN: "dim",
}

console = Console()


def severity_style(severity: Severity) -> str:
    """Return the Rich style string for a given severity level."""
    return _SEVERITY_STYLES.get(severity, "white")


def print_project_report(project: ProjectReport) -> None:
    """Print findings, database matches, proofs and a summary line.

    Args:
        project: Merged report of every analyzed file.
    """
    findings_table = Table(title="Sanctifier Findings", show_header=True, header_style="bold")
    findings_table.add_column("Severity", justify="center")
    findings_table.add_column("Rule", style="bold")
    findings_table.add_column("File", style="dim")
    findings_table.add_column("Location")
    findings_table.add_column("Message")
    rows = 0
    for report in project.reports:
        for finding in report.all_findings:
            findings_table.add_row(
                Text(finding.severity.label, style=severity_style(finding.severity)),
                finding.rule_name,
                report.file_name,
                finding.location,
                finding.message,
            )
            rows += 1
    if rows:
        console.print(findings_table)
    else:
        console.print("[green]No rule findings.[/green]")

    combined = project.combined
    if combined.vuln_matches:
        vuln_table = Table(
            title=f"Vulnerability Database Matches (db {combined.vuln_db_version})",
            show_header=True,
        )
        vuln_table.add_column("ID", style="bold")
        vuln_table.add_column("Severity", justify="center")
        vuln_table.add_column("Name")
        vuln_table.add_column("Where", style="dim")
        vuln_table.add_column("Snippet", style="dim")
        for match in combined.vuln_matches:
            vuln_table.add_row(
                match.vuln_id, match.severity, match.name,
                f"{match.file}:{match.line}", match.snippet[:80],
            )
        console.print(vuln_table)

    if combined.proofs:
        proof_table = Table(title="Overflow Proofs (Z3)", show_header=True)
        proof_table.add_column("Location", style="bold")
        proof_table.add_column("Type")
        proof_table.add_column("Outcome", justify="center")
        proof_table.add_column("Counterexample", style="dim")
        for proof in combined.proofs:
            example = ""
            if proof.counterexample:
                example = ", ".join(f"{k}={v}" for k, v in proof.counterexample.items())
            proof_table.add_row(
                proof.location,
                proof.bounds.type_name or "-",
                Text(proof.outcome.value, style=_OUTCOME_STYLES[proof.outcome]),
                example,
            )
        console.print(proof_table)

    failed = set(project.failed_files)
    for report in project.reports:
        for error in report.errors:
            console.print(f"[bold red]Analysis of {escape(report.file_name)} failed:[/bold red] {escape(error)}")
    for name in project.unparsed_files:
        if name not in failed:
            console.print(f"[dim]Could not parse {name}; only pattern scans ran.[/dim]")
    _print_summary(project)


def _print_summary(project: ProjectReport) -> None:
    """Print a one-line summary after the findings table."""
    combined = project.combined
    parts = [f"[bold]{len(project.reports)}[/bold] files analyzed"]
    parts.append(f"{combined.total_findings} findings")
    if combined.vuln_matches:
        parts.append(f"{len(combined.vuln_matches)} database matches")
    if project.failed_files:
        parts.append(f"[bold red]{len(project.failed_files)} failed[/bold red]")
    if project.has_critical:
        parts.append("[bold red]critical[/bold red]")
    elif project.has_high:
        parts.append("[yellow]high[/yellow]")
    else:
        parts.append("[green]no critical or high issues[/green]")
    console.print(" | ".join(parts))


def print_gas_report(report: GasReport) -> None:
    """Print per-function estimates and totals."""
    if not report.entries:
        console.print("[dim]No public contract functions found.[/dim]")
        return
    table = Table(title="Gas Estimates", show_header=True, header_style="bold")
    table.add_column("Function", style="bold")
    table.add_column("Instructions", justify="right")
    table.add_column("Memory (bytes)", justify="right")
    table.add_column("Tier", justify="center")
    for entry in report.entries:
        table.add_row(
            entry.function_name,
            str(entry.estimated_instructions),
            str(entry.estimated_memory_bytes),
            Text(entry.tier.value, style=_TIER_STYLES[entry.tier]),
        )
    console.print(table)
    console.print(
        f"Total: [bold]{report.total_instructions}[/bold] instructions, "
        f"[bold]{report.total_memory_bytes}[/bold] bytes"
    )


def print_rules(registry: RuleRegistry) -> None:
    """Print the registered rules in the order they run."""
    table = Table(title="Registered Rules", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Rule", style="bold")
    table.add_column("Description")
    for index, rule in enumerate(registry.rules, start=1):
        table.add_row(str(index), rule.name, rule.description)
    console.print(table)


def print_benchmark(report: SmtLatencyBenchmarkReport) -> None:
    """Print strategy latencies, slowest first."""
    console.print(
        Panel(
            f"[bold]{report.iterations_per_strategy}[/bold] iterations per strategy",
            title="SMT Latency Benchmark",
        )
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Strategy", style="bold")
    for column in ("min", "avg", "p95", "max"):
        table.add_column(f"{column} (us)", justify="right")
    for latency in report.most_expensive_first():
        table.add_row(
            latency.strategy.value,
            str(latency.min_micros),
            str(latency.avg_micros),
            str(latency.p95_micros),
            str(latency.max_micros),
        )
    console.print(table)
