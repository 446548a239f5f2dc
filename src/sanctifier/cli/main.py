"""Sanctifier CLI -- Static analysis for Soroban smart contracts.

Entry point for the ``sanctifier`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    analyze        -- Run every detector over a contract tree.
    gas            -- Estimate instruction and memory cost of public methods.
    callgraph      -- Write the cross-contract call graph as Graphviz DOT.
    rules          -- List the rules an analysis would run.
    smt-benchmark  -- Time the Z3 overflow proof strategies.

Usage::

    sanctifier analyze ./contracts
    sanctifier analyze ./contracts --format json --prove
    sanctifier gas ./contracts/token/src/lib.rs
    sanctifier callgraph ./contracts -o calls.dot
    sanctifier rules
    sanctifier smt-benchmark --iterations 20
"""

from __future__ import annotations

import logging

import click

from sanctifier import __version__
from sanctifier.cli.analyze import analyze_command
from sanctifier.cli.benchmark_cmd import smt_benchmark_command
from sanctifier.cli.callgraph_cmd import callgraph_command
from sanctifier.cli.gas_cmd import gas_command
from sanctifier.cli.rules_cmd import rules_command


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Sanctifier: static analysis and formal checks for Soroban contracts.

    Detect authentication gaps, panics, overflow, ledger size risks,
    storage key collisions and reentrancy before deployment.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# Register all subcommands
cli.add_command(analyze_command)
cli.add_command(gas_command)
cli.add_command(callgraph_command)
cli.add_command(rules_command)
cli.add_command(smt_benchmark_command)
