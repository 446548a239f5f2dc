"""``sanctifier rules [PATH]`` -- List the rules an analysis would run.

Custom rules come from the configuration file found for PATH.

Exit Codes:
    0 -- Always (informational command).
"""

from __future__ import annotations

from pathlib import Path

import click

from sanctifier.core.analyzer.engine import build_registry
from sanctifier.core.config import load_config


@click.command("rules")
@click.argument("path", type=click.Path(exists=True), default=".")
def rules_command(path: str) -> None:
    """List registered rules in the order they run."""
    from sanctifier.cli.output import print_rules

    print_rules(build_registry(load_config(Path(path))))
