"""``sanctifier analyze PATH`` -- Run every detector over a contract tree.

Exit Codes:
    0 -- No critical or high issues.
    1 -- At least one critical or high issue, a file whose analysis failed,
         or a database that fails to load.
    2 -- No ``.rs`` files found under PATH.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path

import click

from sanctifier.core.analyzer.engine import DEFAULT_MAX_WORKERS, analyze_sources
from sanctifier.core.config import AnalysisConfig, is_ignored, load_config
from sanctifier.core.vulndb import VulnDatabase
from sanctifier.exceptions import VulnDatabaseError

logger = logging.getLogger(__name__)


def collect_rs_files(target: Path, ignore_paths: tuple[str, ...] = ()) -> list[Path]:
    """Return the ``.rs`` files under ``target`` in sorted order.

    Files inside directories matched by ``ignore_paths`` (at any depth
    below ``target``) are skipped. A single ``.rs`` file target is
    returned as is.
    """
    if target.is_file():
        return [target] if target.suffix == ".rs" else []
    files: list[Path] = []
    for path in sorted(target.rglob("*.rs")):
        if not path.is_file():
            continue
        directory = path.relative_to(target).parent
        if any(is_ignored(d, ignore_paths) for d in (directory, *directory.parents)):
            continue
        files.append(path)
    return files


def read_sources(files: list[Path]) -> list[tuple[str, str]]:
    """Read each file as UTF-8; unreadable files are logged and skipped."""
    sources: list[tuple[str, str]] = []
    for path in files:
        try:
            sources.append((str(path), path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable file %s: %s", path, exc)
    return sources


def _effective_config(target: Path, limit: int | None, prove: bool) -> AnalysisConfig:
    config = load_config(target)
    if limit is not None:
        config = dataclasses.replace(config, ledger_limit=limit)
    if prove:
        config = dataclasses.replace(config, prove_overflow=True)
    return config


@click.command("analyze")
@click.argument("path", type=click.Path(exists=True))
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Ledger entry size limit in bytes (overrides the config file).",
)
@click.option(
    "--vuln-db",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Vulnerability database JSON to use instead of the bundled one.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Number of files analyzed in parallel.",
)
@click.option(
    "--prove",
    is_flag=True,
    default=False,
    help="Ask the Z3 prover whether flagged additions can overflow.",
)
def analyze_command(
    path: str,
    output_format: str,
    limit: int | None,
    vuln_db: str | None,
    workers: int,
    prove: bool,
) -> None:
    """Analyze Soroban contract sources under PATH.

    Reports authentication gaps, panics, unchecked arithmetic, ledger
    size risks, storage key collisions, reentrancy, unhandled results,
    custom rule matches and known vulnerability patterns.

    Exit code 1 if any critical or high issue is found or a file could not
    be fully analyzed, 2 if PATH holds no .rs files.
    """
    target = Path(path)
    config = _effective_config(target, limit, prove)

    try:
        database = VulnDatabase.load(Path(vuln_db)) if vuln_db else VulnDatabase.load_default()
    except VulnDatabaseError as exc:
        raise click.ClickException(str(exc)) from exc

    files = collect_rs_files(target, config.ignore_paths)
    if not files:
        if output_format == "json":
            click.echo(json.dumps({"files": [], "summary": "No .rs files found"}))
        else:
            click.echo("No .rs files found in the target path.")
        sys.exit(2)

    project = analyze_sources(
        read_sources(files),
        config,
        project_path=str(target),
        max_workers=workers,
        vuln_db=database,
    )

    if output_format == "json":
        click.echo(json.dumps(project.to_dict(), indent=2, default=str))
    else:
        from sanctifier.cli.output import print_project_report
        print_project_report(project)

    sys.exit(1 if project.has_critical or project.has_high or project.failed_files else 0)
