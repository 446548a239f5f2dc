"""Tests for ``sanctifier rules`` command."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from sanctifier.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


class TestRulesCommand:
    def test_lists_builtin_rules(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["rules", str(tmp_path)])
        assert result.exit_code == 0
        assert "Registered Rules" in result.output
        for name in ("auth_gap", "ledger_size", "panic_detection", "storage_collision", "reentrancy"):
            assert name in result.output

    def test_includes_configured_custom_rules(self, runner: CliRunner, tmp_path: Path) -> None:
        """Custom rules from .sanctify.toml are listed after the built-ins."""
        (tmp_path / ".sanctify.toml").write_text(
            '[[custom_rules]]\nname = "no_println"\npattern = "println!"\n'
        )
        result = runner.invoke(cli, ["rules", str(tmp_path)])
        assert result.exit_code == 0
        assert "no_println" in result.output

    def test_default_path(self, runner: CliRunner) -> None:
        with runner.isolated_filesystem():
            assert runner.invoke(cli, ["rules"]).exit_code == 0
