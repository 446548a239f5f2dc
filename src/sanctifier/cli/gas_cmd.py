"""``sanctifier gas PATH`` -- Estimate instruction and memory cost.

Exit Codes:
    0 -- Estimates printed.
    2 -- No ``.rs`` files found under PATH.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sanctifier.cli.analyze import collect_rs_files, read_sources
from sanctifier.core.config import load_config
from sanctifier.core.gas import GasEstimator, GasReport, render_json


@click.command("gas")
@click.argument("path", type=click.Path(exists=True))
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
def gas_command(path: str, output_format: str) -> None:
    """Estimate the cost of every public contract method under PATH."""
    target = Path(path)
    config = load_config(target)
    files = collect_rs_files(target, config.ignore_paths)
    if not files:
        click.echo("No .rs files found in the target path.")
        sys.exit(2)

    estimator = GasEstimator()
    estimations = []
    for _, source in read_sources(files):
        estimations.extend(estimator.estimate_contract(source))
    report = GasReport.from_estimations(estimations)

    if output_format == "json":
        click.echo(render_json(report))
    else:
        from sanctifier.cli.output import print_gas_report
        print_gas_report(report)
