"""``sanctifier smt-benchmark`` -- Time the overflow proof strategies.

Exit Codes:
    0 -- Benchmark completed.
    1 -- The output file could not be written.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from sanctifier.core.prover import run_smt_latency_benchmark
from sanctifier.core.prover.smt import DEFAULT_TIMEOUT_MS


@click.command("smt-benchmark")
@click.option(
    "--iterations",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Solver runs per strategy.",
)
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Solver timeout per query, in milliseconds.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write the report as JSON to this file.",
)
def smt_benchmark_command(iterations: int, timeout_ms: int, output: str | None) -> None:
    """Measure Z3 latency for unconstrained, bounded and small-domain additions."""
    from sanctifier.cli.output import print_benchmark

    report = run_smt_latency_benchmark(iterations, timeout_ms)
    print_benchmark(report)
    if output:
        try:
            Path(output).write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise click.ClickException(f"Failed to write benchmark report: {exc}") from exc
        click.echo(f"Benchmark report written to: {output}")
