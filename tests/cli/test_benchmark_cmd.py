"""Tests for ``sanctifier smt-benchmark`` command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from sanctifier.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


class TestSmtBenchmarkCommand:
    def test_prints_every_strategy(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["smt-benchmark", "--iterations", "1", "--timeout-ms", "2000"])
        assert result.exit_code == 0
        assert "SMT Latency Benchmark" in result.output
        for strategy in ("unconstrained_overflow", "bounded_domain_overflow", "small_domain_overflow"):
            assert strategy in result.output

    def test_writes_json_report(self, runner: CliRunner, tmp_path: Path) -> None:
        output = tmp_path / "bench.json"
        result = runner.invoke(cli, ["smt-benchmark", "--iterations", "1", "--output", str(output)])
        assert result.exit_code == 0
        assert f"Benchmark report written to: {output}" in result.output
        data = json.loads(output.read_text())
        assert data["iterations_per_strategy"] == 1
        assert len(data["strategies"]) == 3

    def test_rejects_zero_iterations(self, runner: CliRunner) -> None:
        assert runner.invoke(cli, ["smt-benchmark", "--iterations", "0"]).exit_code == 2
