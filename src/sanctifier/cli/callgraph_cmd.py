"""``sanctifier callgraph PATH`` -- Write a Graphviz DOT cross-contract call graph.

Exit Codes:
    0 -- DOT file written.
    1 -- The output file could not be written.
    2 -- No ``.rs`` files found under PATH.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sanctifier.cli.analyze import collect_rs_files, read_sources
from sanctifier.core.callgraph import CallEdge, callgraph_to_dot, infer_contract_name, scan_invoke_contract_calls
from sanctifier.core.config import load_config
from sanctifier.parsers import parse_source


@click.command("callgraph")
@click.argument("path", type=click.Path(exists=True))
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False),
    default="callgraph.dot",
    show_default=True,
    help="Output DOT file path.",
)
def callgraph_command(path: str, output: str) -> None:
    """Extract env.invoke_contract and typed-client calls as a DOT graph.

    Each contract is named after its #[contract] struct, or after the file
    stem when the file declares none.
    """
    target = Path(path)
    config = load_config(target)
    files = collect_rs_files(target, config.ignore_paths)
    if not files:
        click.echo("No .rs files found in the target path.")
        sys.exit(2)

    edges: list[CallEdge] = []
    for file_name, source in read_sources(files):
        tree = parse_source(source)
        caller = infer_contract_name(tree) or Path(file_name).stem
        edges.extend(scan_invoke_contract_calls(tree, caller, file_name))

    try:
        Path(output).write_text(callgraph_to_dot(edges), encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Failed to write DOT file: {exc}") from exc
    click.echo(f"Wrote call graph to {output} ({len(edges)} edges)")
