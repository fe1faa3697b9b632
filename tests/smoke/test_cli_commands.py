"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import subprocess
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lexiflow.cli import main as cli

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command in a fresh interpreter and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m lexiflow.cli.main')
        timeout: Maximum time to wait
    """
    result = subprocess.run(
        [sys.executable, "-m", "lexiflow.cli.main", *command.split()],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def cli_service(monkeypatch, service, food_category):
    """Point the CLI at the test StudyService."""
    monkeypatch.setattr(cli, "_get_study_service", lambda: service)
    return service


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "lexiflow" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["db", "sessions", "stats", "batch", "serve"])
    def test_subcommand_help(self, command):
        code, stdout, stderr = run_cli_command(f"{command} --help")

        assert code == 0, f"{command} help failed: {stderr}"


class TestCLICommands:
    """Run commands against the in-memory test database."""

    def test_batch_preview(self, cli_service):
        result = runner.invoke(cli.app, ["batch", "alice", "--category", "1", "--max-words", "2"])

        assert result.exit_code == 0, result.output
        assert "0 due, 2 new" in result.output

    def test_batch_unknown_category(self, cli_service):
        result = runner.invoke(cli.app, ["batch", "alice", "--category", "99"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_batch_review_mode_empty(self, cli_service):
        result = runner.invoke(cli.app, ["batch", "alice", "--mode", "review"])

        assert result.exit_code == 0
        assert "Nothing to study" in result.output

    def test_stats_show(self, cli_service):
        session = cli_service.tracker.start_session("alice", 1)
        cli_service.processor.submit_response(session.session_id, 102, "easy")
        cli_service.tracker.end_session(session.session_id)

        result = runner.invoke(cli.app, ["stats", "show", "alice"])

        assert result.exit_code == 0, result.output
        assert "Current streak" in result.output
        assert "Food" in result.output

    def test_sessions_list_empty(self, cli_service):
        result = runner.invoke(cli.app, ["sessions", "list", "nobody"])

        assert result.exit_code == 0
        assert "No sessions" in result.output

    def test_sessions_reconcile(self, cli_service, clock):
        cli_service.tracker.start_session("alice", 1)
        clock.advance(hours=6)

        result = runner.invoke(cli.app, ["sessions", "reconcile", "--idle-minutes", "60"])

        assert result.exit_code == 0, result.output
        assert "Closed 1 stale session" in result.output
        assert cli_service.tracker.open_session_for("alice") is None

    def test_sessions_reconcile_nothing_stale(self, cli_service):
        result = runner.invoke(cli.app, ["sessions", "reconcile"])

        assert result.exit_code == 0
        assert "No stale sessions" in result.output
