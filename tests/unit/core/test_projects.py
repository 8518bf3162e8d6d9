"""Unit tests for local checkouts and their metadata."""

from pathlib import Path

import pytest
from fakes import FakeVCS
from wsctl.core.manifest import ManifestError
from wsctl.core.projects import (
    ProjectStateError,
    clean_checkout,
    converge_checkout,
    create_checkout,
    inspect_checkout,
    metadata_path,
    read_metadata,
    scan_local_projects,
    write_metadata,
)
from wsctl.core.workspace import Workspace, WorkspaceError
from wsctl.models.manifest import Project
from wsctl.vcs.base import VCSError


@pytest.fixture
def tools() -> Project:
    """A HEAD-tracking project."""
    return Project(name="tools", path="devtools/tools", remote="https://r1")


class TestMetadata:
    """Tests for reading and writing project metadata."""

    def test_round_trip(self, tmp_path: Path, tools: Project) -> None:
        """Written metadata reads back as the same project."""
        assert write_metadata(tmp_path, tools) is True
        assert read_metadata(tmp_path) == tools

    def test_unchanged_is_not_rewritten(self, tmp_path: Path, tools: Project) -> None:
        """Writing identical metadata is a no-op."""
        write_metadata(tmp_path, tools)
        assert write_metadata(tmp_path, tools) is False

    def test_malformed(self, tmp_path: Path) -> None:
        """Malformed metadata raises ManifestError."""
        path = metadata_path(tmp_path)
        path.parent.mkdir()
        path.write_text("name = ")

        with pytest.raises(ManifestError):
            read_metadata(tmp_path)


class TestScanLocalProjects:
    """Tests for scan_local_projects."""

    def test_finds_projects_at_actual_location(
        self, workspace: Workspace, tools: Project
    ) -> None:
        """A project moved by hand is reported where it is."""
        write_metadata(workspace.root / "moved" / "here", tools)

        found = scan_local_projects(workspace)

        assert found["tools"].path == "moved/here"

    def test_skips_hidden_directories(self, workspace: Workspace, tools: Project) -> None:
        """Hidden directories are not searched."""
        write_metadata(workspace.root / ".cache" / "tools", tools)

        assert scan_local_projects(workspace) == {}

    def test_name_conflict(self, workspace: Workspace, tools: Project) -> None:
        """Two checkouts of the same project are an error naming both paths."""
        write_metadata(workspace.root / "a", tools)
        write_metadata(workspace.root / "b", tools)

        with pytest.raises(WorkspaceError, match="name conflict"):
            scan_local_projects(workspace)


class TestCreateCheckout:
    """Tests for create_checkout."""

    def test_clones_and_records(
        self, workspace: Workspace, fake_vcs: FakeVCS, tools: Project
    ) -> None:
        """A new checkout is at the remote head and carries metadata."""
        fake_vcs.add_remote("https://r1", branches={"main": "c7"})
        directory = workspace.project_dir(tools.path)

        create_checkout(fake_vcs, tools, directory, workspace)

        assert fake_vcs.current_revision(directory) == "c7"
        assert fake_vcs.current_branch(directory) is None
        assert read_metadata(directory) == tools
        exclude = (directory / ".git" / "info" / "exclude").read_text()
        assert "/.wsctl/" in exclude.splitlines()

    def test_failed_clone_leaves_nothing(
        self, workspace: Workspace, fake_vcs: FakeVCS, tools: Project
    ) -> None:
        """A failing clone leaves no partial checkout or staging directory."""
        directory = workspace.project_dir(tools.path)

        with pytest.raises(VCSError, match="not found"):
            create_checkout(fake_vcs, tools, directory, workspace)

        assert not directory.exists()
        assert list(directory.parent.iterdir()) == []

    def test_existing_destination(
        self, workspace: Workspace, fake_vcs: FakeVCS, tools: Project
    ) -> None:
        """An existing destination is never overwritten."""
        directory = workspace.project_dir(tools.path)
        directory.mkdir(parents=True)

        with pytest.raises(ProjectStateError, match="already exists"):
            create_checkout(fake_vcs, tools, directory, workspace)

    def test_installs_githooks(self, workspace: Workspace, fake_vcs: FakeVCS) -> None:
        """Declared hooks are copied into the checkout."""
        hooks = workspace.root / "hooks"
        hooks.mkdir()
        (hooks / "pre-commit").write_text("#!/bin/sh\n")
        fake_vcs.add_remote("https://r1")
        project = Project(name="tools", path="tools", remote="https://r1", githooks="hooks")

        create_checkout(fake_vcs, project, workspace.project_dir("tools"), workspace)

        assert (workspace.root / "tools" / ".git" / "hooks" / "pre-commit").is_file()


class TestConvergeCheckout:
    """Tests for converge_checkout."""

    @pytest.fixture
    def checkout(self, workspace: Workspace, fake_vcs: FakeVCS, tools: Project) -> Path:
        fake_vcs.add_remote("https://r1", branches={"main": "c1"})
        directory = workspace.project_dir(tools.path)
        create_checkout(fake_vcs, tools, directory, workspace)
        fake_vcs.calls.clear()
        return directory

    def test_current_is_noop(self, fake_vcs: FakeVCS, tools: Project, checkout: Path) -> None:
        """A checkout already at the desired revision is not touched."""
        assert converge_checkout(fake_vcs, tools, checkout) is False
        assert fake_vcs.mutations == []

    def test_moves_to_new_head(self, fake_vcs: FakeVCS, tools: Project, checkout: Path) -> None:
        """A newer remote head is fetched and checked out."""
        fake_vcs.remotes["https://r1"].branches["main"] = "c2"

        assert converge_checkout(fake_vcs, tools, checkout) is True
        assert fake_vcs.current_revision(checkout) == "c2"
        assert [c[0] for c in fake_vcs.mutations] == ["fetch", "checkout"]

    def test_pinned_revision(self, fake_vcs: FakeVCS, tools: Project, checkout: Path) -> None:
        """A pinned revision is checked out instead of the head."""
        fake_vcs.remotes["https://r1"].commits.add("c0")
        pinned = tools.model_copy(update={"revision": "c0"})

        assert converge_checkout(fake_vcs, pinned, checkout) is True
        assert fake_vcs.current_revision(checkout) == "c0"

    def test_remote_change_refetches(
        self, fake_vcs: FakeVCS, tools: Project, checkout: Path
    ) -> None:
        """A changed remote URL forces a fetch from the new remote."""
        fake_vcs.add_remote("https://mirror", branches={"main": "c1"})
        moved = tools.model_copy(update={"remote": "https://mirror"})

        assert converge_checkout(fake_vcs, moved, checkout) is True
        assert fake_vcs.remote_url(checkout) == "https://mirror"

    def test_local_branch_refused(
        self, fake_vcs: FakeVCS, tools: Project, checkout: Path
    ) -> None:
        """A checkout on a local branch is not moved."""
        fake_vcs.remotes["https://r1"].branches["main"] = "c2"
        fake_vcs.set_state(checkout, branch="feature")

        with pytest.raises(ProjectStateError, match="feature"):
            converge_checkout(fake_vcs, tools, checkout)
        assert fake_vcs.mutations == []

    def test_uncommitted_changes_refused(
        self, fake_vcs: FakeVCS, tools: Project, checkout: Path
    ) -> None:
        """Uncommitted changes block an update."""
        fake_vcs.remotes["https://r1"].branches["main"] = "c2"
        fake_vcs.set_state(checkout, dirty=True)

        with pytest.raises(ProjectStateError, match="uncommitted"):
            converge_checkout(fake_vcs, tools, checkout)


class TestCleanCheckout:
    """Tests for clean_checkout and inspect_checkout."""

    @pytest.fixture
    def checkout(self, workspace: Workspace, fake_vcs: FakeVCS, tools: Project) -> Path:
        fake_vcs.add_remote("https://r1", branches={"main": "c1"})
        directory = workspace.project_dir(tools.path)
        create_checkout(fake_vcs, tools, directory, workspace)
        fake_vcs.calls.clear()
        return directory

    def test_fresh_checkout_is_pristine(
        self, fake_vcs: FakeVCS, tools: Project, checkout: Path
    ) -> None:
        """A checkout just created has no local work."""
        state = inspect_checkout(fake_vcs, tools, checkout)

        assert state.revision == "c1"
        assert state.branch is None
        assert state.pristine
        assert fake_vcs.mutations == []

    def test_restores_local_work(self, fake_vcs: FakeVCS, tools: Project, checkout: Path) -> None:
        """Changes are discarded and HEAD returns to the desired revision; branches stay."""
        fake_vcs.remotes["https://r1"].branches["main"] = "c2"
        fake_vcs.set_state(
            checkout, branch="feature", branches=["main", "feature"], dirty=True, untracked=True
        )
        assert not inspect_checkout(fake_vcs, tools, checkout).pristine

        clean_checkout(fake_vcs, tools, checkout)

        state = inspect_checkout(fake_vcs, tools, checkout)
        assert state.revision == "c2"
        assert state.branch is None
        assert not state.dirty
        assert state.local_work == ["feature"]

    def test_deletes_branches(self, fake_vcs: FakeVCS, tools: Project, checkout: Path) -> None:
        """Local branches go too when asked; the tracked branch is kept."""
        fake_vcs.set_state(checkout, branch="feature", branches=["main", "feature", "wip"])

        clean_checkout(fake_vcs, tools, checkout, delete_branches=True)

        assert fake_vcs.local_branches(checkout) == ["main"]
        assert inspect_checkout(fake_vcs, tools, checkout).pristine
