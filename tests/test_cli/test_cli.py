"""Tests for the click command group."""

from __future__ import annotations

from click.testing import CliRunner

from exitosx.cli import cli


class TestCli:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("recalc", "sync-quickbooks", "classify", "seed", "serve"):
            assert command in result.output

    def test_recalc_requires_a_target(self):
        result = CliRunner().invoke(cli, ["recalc"])
        assert result.exit_code == 1
        assert "pass --company-id or --all" in result.output

    def test_sync_requires_integration_id(self):
        result = CliRunner().invoke(cli, ["sync-quickbooks"])
        assert result.exit_code == 2
        assert "--integration-id" in result.output
