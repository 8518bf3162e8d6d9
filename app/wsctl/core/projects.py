"""Local project checkouts and their metadata.

Each checkout managed by wsctl carries a metadata file describing the
project it was created for. Scanning the workspace for these files gives
the set of projects currently present on disk.
"""

import logging
import os
import shutil
import stat
import tempfile
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w
from pydantic import ValidationError

from wsctl.core.manifest import ManifestError, write_atomic
from wsctl.core.workspace import PROJECT_META_DIR, PROJECT_META_FILE, Workspace, WorkspaceError
from wsctl.models.manifest import Project
from wsctl.vcs.base import VCS

logger = logging.getLogger(__name__)


class ProjectStateError(Exception):
    """Raised when a checkout is in a state that an update would clobber."""


def metadata_path(directory: Path) -> Path:
    """Path of the metadata file inside a project checkout."""
    return directory / PROJECT_META_DIR / PROJECT_META_FILE


def read_metadata(directory: Path) -> Project:
    """Read the project metadata stored in a checkout.

    Args:
        directory: Project checkout directory.

    Returns:
        The Project the checkout was created for.

    Raises:
        ManifestError: If the metadata is missing or malformed.
    """
    path = metadata_path(directory)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return Project.model_validate(data)
    except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
        raise ManifestError(f"Invalid project metadata {path}: {e}") from e


def write_metadata(directory: Path, project: Project) -> bool:
    """Write project metadata into a checkout if it changed.

    Args:
        directory: Project checkout directory.
        project: Project to record.

    Returns:
        True if the file was (re)written.
    """
    path = metadata_path(directory)
    content = tomli_w.dumps(project.model_dump(mode="json", exclude_none=True))
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        return False
    write_atomic(path, content)
    return True


def scan_local_projects(workspace: Workspace) -> dict[str, Project]:
    """Find every project checked out in the workspace.

    Hidden directories are not searched. The recorded path of each project
    is replaced by where it actually lives, so projects moved by hand are
    still recognized.

    Args:
        workspace: Workspace to scan.

    Returns:
        Mapping of project name to Project.

    Raises:
        WorkspaceError: If two checkouts claim the same project name.
        ManifestError: If a metadata file is malformed.
    """
    found: dict[str, Project] = {}
    for dirpath, dirnames, _filenames in os.walk(workspace.root):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        if current == workspace.root or not metadata_path(current).is_file():
            continue
        project = read_metadata(current)
        relative = workspace.relative(current)
        if project.path != relative:
            logger.debug(
                "Project %s recorded at %s found at %s", project.name, project.path, relative
            )
            project = project.model_copy(update={"path": relative})
        if project.name in found:
            other = found[project.name].path
            raise WorkspaceError(
                f"name conflict: both {other} and {relative} contain project {project.name}"
            )
        found[project.name] = project
    return found


def desired_revision(vcs: VCS, project: Project, directory: Path | None = None) -> str:
    """Commit (or revision name) the checkout of a project should be at.

    HEAD-tracking projects resolve to the remote branch tip without fetching.
    Pinned revisions resolve locally when the checkout already knows them.
    """
    if project.tracks_head:
        return vcs.remote_head(project.remote, project.remote_branch)
    if directory is not None:
        resolved = vcs.resolve_revision(directory, project.revision)
        if resolved:
            return resolved
    return project.revision


def create_checkout(vcs: VCS, project: Project, directory: Path, workspace: Workspace) -> None:
    """Clone a project into place.

    The clone is made in a temporary sibling directory and only renamed to
    its final location once it is checked out, so a failed clone never
    leaves a partial checkout behind.

    Args:
        vcs: Client used to clone and check out.
        project: Project to create.
        directory: Final checkout location.
        workspace: Owning workspace.

    Raises:
        ProjectStateError: If the destination already exists.
        VCSError: If cloning or checking out fails.
    """
    if directory.exists():
        raise ProjectStateError(f"cannot create {project.name}: {directory} already exists")
    directory.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(dir=directory.parent, prefix=f".{directory.name}-"))
    try:
        vcs.clone(project.remote, staging)
        vcs.checkout(staging, desired_revision(vcs, project, staging))
        write_metadata(staging, project)
        _exclude_metadata(staging)
        _install_githooks(staging, project, workspace)
        os.rename(staging, directory)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise


def converge_checkout(vcs: VCS, project: Project, directory: Path) -> bool:
    """Bring an existing checkout to the project's desired revision.

    Nothing is mutated when the checkout already points at the desired
    revision of the declared remote.

    Args:
        vcs: Client used to query, fetch and check out.
        project: Declared project.
        directory: Existing checkout.

    Returns:
        True if the checkout was fetched and checked out, False if it was current.

    Raises:
        ProjectStateError: If the checkout is on a local branch or has uncommitted changes.
        VCSError: If a VCS operation fails.
    """
    target = desired_revision(vcs, project, directory)
    remote_changed = vcs.remote_url(directory) != project.remote
    if not remote_changed and vcs.current_revision(directory) == target:
        write_metadata(directory, project)
        return False

    branch = vcs.current_branch(directory)
    if branch is not None:
        raise ProjectStateError(
            f"{project.name} is on local branch {branch!r}; detach it to let wsctl update it"
        )
    if vcs.has_uncommitted_changes(directory):
        raise ProjectStateError(f"{project.name} has uncommitted changes")

    vcs.fetch(directory, project.remote)
    vcs.checkout(directory, target)
    write_metadata(directory, project)
    return True


@dataclass(frozen=True, slots=True)
class CheckoutState:
    """What a local checkout currently looks like.

    Attributes:
        project: Project recorded in the checkout's metadata.
        revision: Commit HEAD points at.
        branch: Checked-out branch, None when HEAD is detached.
        branches: All local branches.
        uncommitted: Whether tracked files have changes.
        untracked: Whether there are untracked files.
    """

    project: Project
    revision: str
    branch: str | None
    branches: tuple[str, ...]
    uncommitted: bool
    untracked: bool

    @property
    def local_work(self) -> list[str]:
        """Branches other than the one the project tracks."""
        return [b for b in self.branches if b != self.project.remote_branch]

    @property
    def pristine(self) -> bool:
        return self.branch is None and not self.local_work and not self.dirty

    @property
    def dirty(self) -> bool:
        return self.uncommitted or self.untracked


def inspect_checkout(vcs: VCS, project: Project, directory: Path) -> CheckoutState:
    """Read the state of a checkout without changing it.

    Raises:
        VCSError: If a query fails.
    """
    return CheckoutState(
        project=project,
        revision=vcs.current_revision(directory),
        branch=vcs.current_branch(directory),
        branches=tuple(vcs.local_branches(directory)),
        uncommitted=vcs.has_uncommitted_changes(directory),
        untracked=vcs.has_untracked_files(directory),
    )


def clean_checkout(
    vcs: VCS, project: Project, directory: Path, delete_branches: bool = False
) -> None:
    """Restore a checkout to the project's desired revision, discarding local work.

    Uncommitted changes and untracked files are thrown away and HEAD is
    detached at the desired revision. Local branches other than the tracked
    one are deleted only when delete_branches is set.

    Raises:
        VCSError: If a VCS operation fails.
    """
    logger.info("Cleaning %s", project.name)
    vcs.discard_changes(directory)
    vcs.fetch(directory, project.remote)
    vcs.checkout(directory, desired_revision(vcs, project, directory))
    if delete_branches:
        for branch in vcs.local_branches(directory):
            if branch != project.remote_branch:
                vcs.delete_branch(directory, branch)
    write_metadata(directory, project)


def _exclude_metadata(directory: Path) -> None:
    """Keep the metadata directory out of git status."""
    info_dir = directory / ".git" / "info"
    if not (directory / ".git").is_dir():
        return
    info_dir.mkdir(parents=True, exist_ok=True)
    exclude = info_dir / "exclude"
    entry = f"/{PROJECT_META_DIR}/"
    existing = exclude.read_text(encoding="utf-8") if exclude.exists() else ""
    if entry not in existing.splitlines():
        with exclude.open("a", encoding="utf-8") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(entry + "\n")


def _install_githooks(directory: Path, project: Project, workspace: Workspace) -> None:
    """Copy the project's declared git hooks into its checkout."""
    if not project.githooks or not (directory / ".git").is_dir():
        return
    source = workspace.project_dir(project.githooks)
    if not source.is_dir():
        logger.warning("Git hooks directory %s for %s not found", source, project.name)
        return
    hooks_dir = directory / ".git" / "hooks"
    hooks_dir.mkdir(parents=True, exist_ok=True)
    for hook in sorted(source.iterdir()):
        if hook.is_file():
            dest = hooks_dir / hook.name
            shutil.copyfile(hook, dest)
            dest.chmod(dest.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
