"""Unit tests for snapshot, project and which commands."""

import pytest
from fakes import FakeVCS
from typer.testing import CliRunner
from wsctl.cli.main import app
from wsctl.core.manifest import load_manifest
from wsctl.core.workspace import Workspace

runner = CliRunner()

MANIFEST = """
[[projects]]
name = "tools"
path = "tools"
remote = "https://r1"

[[tools]]
name = "helper"
project = "tools"
"""


@pytest.fixture
def synced(workspace: Workspace, git: FakeVCS) -> Workspace:
    """Workspace after one successful update of a project providing a tool."""
    git.add_remote("https://r1", branches={"main": "c5"}, files={"bin/helper": "#!/bin/sh\n"})
    workspace.manifest_path.write_text(MANIFEST)
    result = runner.invoke(app, ["update"])
    assert result.exit_code == 0, result.output
    return workspace


class TestSnapshotCommand:
    """Tests for wsctl snapshot."""

    def test_pins_projects_and_keeps_tools(self, synced: Workspace) -> None:
        """The snapshot pins revisions and carries the recorded tools."""
        out = synced.root.parent / "snap.toml"

        result = runner.invoke(app, ["snapshot", str(out)])

        assert result.exit_code == 0, result.output
        assert "1 project(s)" in result.stdout
        manifest = load_manifest(out)
        assert [(p.name, p.revision) for p in manifest.projects] == [("tools", "c5")]
        assert [t.name for t in manifest.tools] == ["helper"]

    def test_empty_workspace(self, workspace: Workspace, git: FakeVCS) -> None:
        """An empty workspace gives an empty snapshot."""
        out = workspace.root.parent / "snap.toml"

        result = runner.invoke(app, ["snapshot", str(out)])

        assert result.exit_code == 0
        assert load_manifest(out).projects == []


class TestProjectCommand:
    """Tests for wsctl project list, info and clean."""

    def test_lists_projects(self, synced: Workspace) -> None:
        """Checked-out projects are listed with their revisions."""
        result = runner.invoke(app, ["project", "list", "--remote"])

        assert result.exit_code == 0, result.output
        assert "tools" in result.stdout
        assert "c5" in result.stdout
        assert "detached" in result.stdout

    def test_no_projects(self, workspace: Workspace, git: FakeVCS) -> None:
        """An empty workspace says so."""
        result = runner.invoke(app, ["project", "list"])

        assert result.exit_code == 0
        assert "No projects found" in result.stdout

    def test_info_for_current_directory(
        self, synced: Workspace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without patterns the project holding the working directory is shown."""
        monkeypatch.chdir(synced.root / "tools" / "bin")

        result = runner.invoke(app, ["project", "info"])

        assert result.exit_code == 0, result.output
        assert "https://r1" in result.stdout
        assert "c5" in result.stdout
        assert "clean" in result.stdout

    def test_info_outside_projects(
        self, synced: Workspace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Outside every checkout a pattern is required."""
        monkeypatch.chdir(synced.root)

        result = runner.invoke(app, ["project", "info"])

        assert result.exit_code == 1
        assert "not inside a project" in result.output

    def test_info_reports_local_work(self, synced: Workspace, git: FakeVCS) -> None:
        """Patterns select projects; local work is listed."""
        git.set_state(synced.root / "tools", branches=["main", "feature"], untracked=True)

        result = runner.invoke(app, ["project", "info", "^to"])

        assert result.exit_code == 0, result.output
        assert "untracked files" in result.stdout
        assert "feature" in result.stdout

    def test_info_bad_pattern(self, synced: Workspace) -> None:
        """An invalid regular expression is an error."""
        result = runner.invoke(app, ["project", "info", "("])

        assert result.exit_code == 1
        assert "Invalid project pattern" in result.output

    def test_clean_restores_checkout(self, synced: Workspace, git: FakeVCS) -> None:
        """Cleaning discards changes and returns to the declared revision."""
        checkout = synced.root / "tools"
        git.set_state(checkout, revision="c5", branch="feature", branches=["main", "feature"])
        git.set_state(checkout, dirty=True)

        result = runner.invoke(app, ["project", "clean", "tools", "--branches", "--yes"])

        assert result.exit_code == 0, result.output
        assert "1 project(s) cleaned" in result.stdout
        state = git.state(checkout)
        assert state["branch"] is None
        assert state["dirty"] is False
        assert state["branches"] == ["main"]

    def test_clean_needs_confirmation(self, synced: Workspace, git: FakeVCS) -> None:
        """Declining the prompt changes nothing."""
        git.set_state(synced.root / "tools", dirty=True)
        git.calls.clear()

        result = runner.invoke(app, ["project", "clean"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.stdout
        assert git.mutations == []

    def test_clean_dry_run(self, synced: Workspace, git: FakeVCS) -> None:
        """A dry run only lists the projects."""
        git.calls.clear()

        result = runner.invoke(app, ["project", "clean", "--dry-run"])

        assert result.exit_code == 0
        assert "tools" in result.stdout
        assert git.mutations == []

    def test_clean_unknown_project(self, synced: Workspace, git: FakeVCS) -> None:
        """Naming a project that is not checked out is an error."""
        result = runner.invoke(app, ["project", "clean", "ghost", "--yes"])

        assert result.exit_code == 1
        assert "ghost" in result.output


class TestWhichCommand:
    """Tests for wsctl which."""

    def test_installed_tool(self, synced: Workspace) -> None:
        """The path of an installed tool is printed."""
        result = runner.invoke(app, ["which", "helper"])

        assert result.exit_code == 0
        assert result.stdout.strip() == str(synced.bin_dir / "helper")

    def test_missing_tool(self, workspace: Workspace) -> None:
        """An unknown tool is an error."""
        result = runner.invoke(app, ["which", "nope"])

        assert result.exit_code == 1
        assert "not installed" in result.output
