"""Unit tests for the top-level CLI application."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner
from wsctl import __version__
from wsctl.cli.main import app
from wsctl.core.workspace import Workspace

runner = CliRunner()


class TestMain:
    """Tests for global options and workspace lookup."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self) -> None:
        """Help shows every command."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("update", "import", "profile", "history", "rollback", "snapshot"):
            assert command in result.stdout

    def test_missing_root(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Commands needing a workspace fail without WSCTL_ROOT."""
        monkeypatch.delenv("WSCTL_ROOT", raising=False)

        result = runner.invoke(app, ["history"])

        assert result.exit_code == 1
        assert "WSCTL_ROOT" in result.output

    def test_relative_root(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A relative WSCTL_ROOT is rejected."""
        monkeypatch.setenv("WSCTL_ROOT", "relative/ws")

        result = runner.invoke(app, ["history"])

        assert result.exit_code == 1
        assert "not an absolute path" in result.output

    def test_git_missing(self, workspace: Workspace) -> None:
        """Commands needing git exit with 127 when it is not installed."""
        with patch("wsctl.cli.types.GitClient.is_available", return_value=False):
            result = runner.invoke(app, ["update"])

        assert result.exit_code == 127
        assert "git is not installed" in result.output
