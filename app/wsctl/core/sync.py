"""Universe synchronization.

Drives every project checked out in the workspace towards the consolidated
manifest: missing projects are cloned, existing ones are fetched and
checked out at their pinned revision, moved ones are renamed, and
undeclared ones are reported or, with gc, removed.

Projects are independent, so creates and updates run on a thread pool
with exactly one task per project. Renames and removals run first, one at
a time, because they can touch directories shared with other projects.
"""

import filecmp
import logging
import os
import shutil
import stat
import tempfile
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from wsctl.core.history import HistoryError, UpdateHistory
from wsctl.core.manifest import ManifestError
from wsctl.core.projects import (
    ProjectStateError,
    converge_checkout,
    create_checkout,
    scan_local_projects,
)
from wsctl.core.workspace import Workspace
from wsctl.models.history import HistoryEntry
from wsctl.models.manifest import Host, Manifest, Project, Tool
from wsctl.vcs.base import VCS, VCSError

logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    """What synchronization does to one project.

    Attributes:
        CREATE: Declared but not checked out; clone it.
        MOVE: Checked out at a different path; rename it.
        UPDATE: Checked out; converge it to the declared revision.
        NULL: Checked out and already converged.
        DELETE: Checked out but undeclared; remove it (gc only).
        ORPHAN: Checked out but undeclared; leave it alone.
    """

    CREATE = "create"
    MOVE = "move"
    UPDATE = "update"
    NULL = "null"
    DELETE = "delete"
    ORPHAN = "orphan"


@dataclass(frozen=True, slots=True)
class Operation:
    """A planned change to one project.

    Attributes:
        kind: Type of change.
        project: Declared project, or the local one for orphans and deletes.
        source: Current workspace-relative path for moves, updates and removals.
    """

    kind: OperationKind
    project: Project
    source: str | None = None

    @property
    def path(self) -> str:
        """Workspace-relative path the operation leaves the project at."""
        return self.project.path


@dataclass(frozen=True, slots=True)
class ProjectResult:
    """Outcome of one operation.

    Attributes:
        name: Project name.
        path: Workspace-relative project path.
        kind: What was done. UPDATE that found nothing to do is reported as NULL.
        detail: Optional note, e.g. why an orphan was kept.
    """

    name: str
    path: str
    kind: OperationKind
    detail: str = ""


@dataclass(frozen=True, slots=True)
class ProjectFailure:
    """A project that failed to converge.

    Attributes:
        name: Project name.
        path: Workspace-relative project path.
        kind: Operation that failed.
        message: Error description.
        returncode: Exit status of the failing VCS command, if any.
    """

    name: str
    path: str
    kind: OperationKind
    message: str
    returncode: int | None = None


@dataclass
class SyncReport:
    """Results of a synchronization run.

    Attributes:
        results: One entry per project that was planned.
        history_entry: The snapshot recorded for the run, if any.
    """

    results: list[ProjectResult] = field(default_factory=list)
    history_entry: HistoryEntry | None = None

    def by_kind(self, kind: OperationKind) -> list[ProjectResult]:
        """Results of a given kind, sorted by path."""
        return sorted((r for r in self.results if r.kind == kind), key=lambda r: r.path)

    @property
    def changed(self) -> bool:
        """True if any project was created, moved, updated, or deleted."""
        return any(r.kind not in (OperationKind.NULL, OperationKind.ORPHAN) for r in self.results)


class SyncError(Exception):
    """Raised when one or more projects failed to converge.

    Attributes:
        failures: Every failed project, sorted by name.
        report: Results of the projects that did converge.
    """

    def __init__(self, failures: list[ProjectFailure], report: SyncReport) -> None:
        self.failures = sorted(failures, key=lambda f: f.name)
        self.report = report
        lines = [f"{f.name} ({f.path}): {f.kind.value} failed: {f.message}" for f in self.failures]
        super().__init__(
            f"{len(self.failures)} project(s) failed to synchronize:\n" + "\n".join(lines)
        )

    @property
    def exit_code(self) -> int:
        """Exit status of the first failing VCS command, or 1."""
        for failure in self.failures:
            if failure.returncode:
                return failure.returncode
        return 1


class SyncAbortedError(Exception):
    """Raised when synchronization was interrupted before all projects ran."""


class _Cancelled(Exception):
    """A queued task noticed the run was aborted before it started."""


def plan_operations(
    declared: Manifest,
    local: dict[str, Project],
    gc: bool = False,
) -> list[Operation]:
    """Compare the declared universe with the local checkouts.

    Args:
        declared: Consolidated manifest.
        local: Projects found on disk, keyed by name.
        gc: Whether undeclared projects should be removed.

    Returns:
        Operations ordered removals first, deepest path first so that a
        nested checkout is examined before the one containing it; then
        moves, creates and updates, sorted by path.
    """
    ops: list[Operation] = []
    declared_names = {p.name for p in declared.projects}
    for project in declared.projects:
        existing = local.get(project.name)
        if existing is None:
            ops.append(Operation(OperationKind.CREATE, project))
        elif existing.path != project.path:
            ops.append(Operation(OperationKind.MOVE, project, source=existing.path))
        else:
            ops.append(Operation(OperationKind.UPDATE, project, source=existing.path))
    for name, project in local.items():
        if name not in declared_names:
            kind = OperationKind.DELETE if gc else OperationKind.ORPHAN
            ops.append(Operation(kind, project, source=project.path))

    order = {
        OperationKind.DELETE: 0,
        OperationKind.ORPHAN: 0,
        OperationKind.MOVE: 1,
        OperationKind.CREATE: 2,
        OperationKind.UPDATE: 2,
        OperationKind.NULL: 2,
    }

    def sort_key(op: Operation) -> tuple[int, int, str]:
        depth = len(PurePosixPath(op.path).parts) if order[op.kind] == 0 else 0
        return order[op.kind], -depth, op.path

    return sorted(ops, key=sort_key)


def capture_snapshot(
    workspace: Workspace,
    vcs: VCS,
    projects: Iterable[Project],
    hosts: Iterable[Host] = (),
    tools: Iterable[Tool] = (),
) -> Manifest:
    """Record the exact revision every project is checked out at.

    Args:
        workspace: Workspace the projects live in.
        vcs: Client used to read revisions.
        projects: Projects to record.
        hosts: Host aliases to carry over.
        tools: Tools to carry over.

    Returns:
        Manifest whose projects are pinned to their current commits.

    Raises:
        VCSError: If a revision cannot be read.
    """
    pinned = [
        p.model_copy(
            update={"revision": vcs.current_revision(workspace.project_dir(p.path))}
        )
        for p in projects
    ]
    return Manifest(
        projects=sorted(pinned, key=lambda p: p.name),
        hosts=sorted(hosts, key=lambda h: h.name),
        tools=sorted(tools, key=lambda t: t.name),
    )


class Synchronizer:
    """Converges the workspace to a consolidated manifest.

    Attributes:
        workspace: Workspace to synchronize.
        jobs: Maximum number of projects processed concurrently.

    Example:
        >>> sync = Synchronizer(workspace, GitClient(), history=UpdateHistory(workspace))
        >>> report = sync.synchronize(universe, gc=True)
    """

    def __init__(
        self,
        workspace: Workspace,
        vcs: VCS,
        *,
        jobs: int | None = None,
        history: UpdateHistory | None = None,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            workspace: Workspace to synchronize.
            vcs: Client used for every repository operation.
            jobs: Worker pool size. Defaults to the number of CPUs.
            history: Where successful runs are recorded. None disables recording.
        """
        self.workspace = workspace
        self.jobs = jobs or os.cpu_count() or 1
        self._vcs = vcs
        self._history = history
        self._removal_lock = threading.Lock()

    def synchronize(self, manifest: Manifest, gc: bool = False) -> SyncReport:
        """Converge every project and record the result.

        Args:
            manifest: Consolidated manifest describing the universe.
            gc: Remove projects that are checked out but no longer declared.

        Returns:
            Report of what happened to each project.

        Raises:
            SyncError: If any project failed; nothing is recorded in history.
            SyncAbortedError: If interrupted; nothing is recorded in history.
        """
        try:
            return self._synchronize(manifest, gc)
        except KeyboardInterrupt:
            logger.warning("Interrupted; no update recorded")
            raise SyncAbortedError("synchronization interrupted") from None

    def _synchronize(self, manifest: Manifest, gc: bool) -> SyncReport:
        local = scan_local_projects(self.workspace)
        operations = plan_operations(manifest, local, gc)
        report = SyncReport()
        failures: list[ProjectFailure] = []

        serial = [op for op in operations if op.kind in _SERIAL_KINDS]
        parallel: list[Operation] = []
        for op in serial:
            try:
                report.results.append(self._run_serial(op, manifest, local))
            except (VCSError, ProjectStateError, ManifestError, OSError) as e:
                failures.append(_failure(op, e))
            else:
                if op.kind == OperationKind.MOVE:
                    parallel.append(Operation(OperationKind.UPDATE, op.project, op.path))
        parallel += [op for op in operations if op.kind not in _SERIAL_KINDS]

        results, parallel_failures = self._run_parallel(parallel)
        report.results += results
        failures += parallel_failures

        if failures:
            raise SyncError(failures, report)

        self._install_tools(manifest)
        if self._history is not None:
            snapshot = capture_snapshot(
                self.workspace, self._vcs, manifest.projects, manifest.hosts, manifest.tools
            )
            report.history_entry = self._history.record_snapshot(snapshot)
        return report

    def _run_parallel(
        self, operations: list[Operation]
    ) -> tuple[list[ProjectResult], list[ProjectFailure]]:
        results: list[ProjectResult] = []
        failures: list[ProjectFailure] = []
        if not operations:
            return results, failures

        stop = threading.Event()
        pool = ThreadPoolExecutor(max_workers=min(self.jobs, len(operations)))
        futures: dict[Future[ProjectResult], Operation] = {}
        try:
            for op in operations:
                futures[pool.submit(self._run_one, op, stop)] = op
            for future in as_completed(futures):
                op = futures[future]
                try:
                    results.append(future.result())
                except (VCSError, ProjectStateError, ManifestError, OSError) as e:
                    failures.append(_failure(op, e))
        except KeyboardInterrupt:
            stop.set()
            logger.warning("Interrupted; waiting for running operations to finish")
            pool.shutdown(wait=True, cancel_futures=True)
            raise SyncAbortedError("synchronization interrupted") from None
        finally:
            pool.shutdown(wait=True)
        return results, failures

    def _run_one(self, op: Operation, stop: threading.Event) -> ProjectResult:
        if stop.is_set():
            raise _Cancelled(op.project.name)
        project = op.project
        directory = self.workspace.project_dir(project.path)
        if op.kind == OperationKind.CREATE:
            create_checkout(self._vcs, project, directory, self.workspace)
            return ProjectResult(project.name, project.path, OperationKind.CREATE)

        changed = converge_checkout(self._vcs, project, directory)
        kind = OperationKind.UPDATE if changed else OperationKind.NULL
        return ProjectResult(project.name, project.path, kind)

    def _run_serial(
        self, op: Operation, manifest: Manifest, local: dict[str, Project]
    ) -> ProjectResult:
        with self._removal_lock:
            if op.kind == OperationKind.MOVE:
                return self._move(op)
            if op.kind == OperationKind.DELETE:
                return self._delete(op, manifest, local)
            return self._orphan(op)

    def _move(self, op: Operation) -> ProjectResult:
        if op.source is None:
            raise ProjectStateError(f"cannot move {op.project.name}: current path unknown")
        source = self.workspace.project_dir(op.source)
        destination = self.workspace.project_dir(op.path)
        if destination.exists():
            raise ProjectStateError(
                f"cannot move {op.project.name} to {destination}: destination exists"
            )
        logger.info("Moving %s from %s to %s", op.project.name, source, destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.rename(source, destination)
        return ProjectResult(op.project.name, op.path, OperationKind.MOVE, f"from {op.source}")

    def _orphan(self, op: Operation) -> ProjectResult:
        logger.info("Project %s at %s is no longer declared", op.project.name, op.path)
        return ProjectResult(
            op.project.name,
            op.path,
            OperationKind.ORPHAN,
            "not in manifest; run with --gc to remove",
        )

    def _delete(
        self, op: Operation, manifest: Manifest, local: dict[str, Project]
    ) -> ProjectResult:
        project = op.project
        directory = self.workspace.project_dir(project.path)
        if not directory.exists():
            logger.info("Undeclared project %s is already gone", project.name)
            return ProjectResult(project.name, project.path, OperationKind.DELETE, "already gone")

        reason = self._keep_reason(project, manifest, local)
        if reason:
            logger.info("Keeping undeclared project %s: %s", project.name, reason)
            return ProjectResult(project.name, project.path, OperationKind.ORPHAN, reason)

        logger.info("Removing undeclared project %s at %s", project.name, directory)
        # Hidden names are never scanned, so an interrupted removal leaves no project behind.
        doomed = Path(tempfile.mkdtemp(dir=directory.parent, prefix=f".{directory.name}-gc-"))
        os.rename(directory, doomed / directory.name)
        shutil.rmtree(doomed)
        self._remove_tools_of(project, manifest)
        return ProjectResult(project.name, project.path, OperationKind.DELETE)

    def _keep_reason(
        self, project: Project, manifest: Manifest, local: dict[str, Project]
    ) -> str:
        """Why an undeclared project must not be removed, or "" if it can be.

        Removals run deepest first, so a checkout nested inside this one that
        still exists is one that was kept (or is declared and about to move).
        """
        here = PurePosixPath(project.path)
        for declared in manifest.projects:
            if here in PurePosixPath(declared.path).parents:
                return f"contains declared project {declared.name}"
        for other in sorted(local.values(), key=lambda p: p.path):
            if here in PurePosixPath(other.path).parents and self.workspace.project_dir(
                other.path
            ).exists():
                return f"contains project {other.name} at {other.path}"
        directory = self.workspace.project_dir(project.path)
        if self._vcs.has_uncommitted_changes(directory):
            return "has uncommitted changes"
        if self._vcs.has_untracked_files(directory):
            return "has untracked files"
        extra = [b for b in self._vcs.local_branches(directory) if b != project.remote_branch]
        if extra:
            return "has local branches: " + ", ".join(sorted(extra))
        return ""

    def _remove_tools_of(self, project: Project, manifest: Manifest) -> None:
        """Remove installed tools that only the removed project provided."""
        if self._history is None:
            return
        try:
            previous = self._history.latest()
            if previous is None:
                return
            previous_tools = self._history.load(previous).tools
        except HistoryError as e:
            logger.warning("Cannot tell which tools %s provided: %s", project.name, e)
            return
        still_declared = {t.name for t in manifest.tools}
        for tool in previous_tools:
            if tool.project != project.name or tool.name in still_declared:
                continue
            installed_paths = (
                self.workspace.bin_dir / tool.name,
                self.workspace.target_bin_dir() / tool.name,
            )
            for installed in installed_paths:
                if installed.is_file():
                    logger.info("Removing tool %s", installed)
                    installed.unlink()

    def _install_tools(self, manifest: Manifest) -> None:
        """Copy the executables of declared tools into the workspace bin directory."""
        for tool in manifest.tools:
            project = manifest.project_by_name(tool.project)
            if project is None:
                continue
            directory = self.workspace.project_dir(project.path)
            source = next(
                (p for p in (directory / "bin" / tool.name, directory / tool.name) if p.is_file()),
                None,
            )
            if source is None:
                logger.debug("Tool %s has not been built in %s", tool.name, directory)
                continue
            self.workspace.bin_dir.mkdir(parents=True, exist_ok=True)
            destination = self.workspace.bin_dir / tool.name
            if destination.is_file() and filecmp.cmp(source, destination, shallow=False):
                continue
            logger.info("Installing tool %s from %s", tool.name, source)
            shutil.copyfile(source, destination)
            destination.chmod(
                destination.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
            )


_SERIAL_KINDS = frozenset({OperationKind.MOVE, OperationKind.DELETE, OperationKind.ORPHAN})


def _failure(op: Operation, error: Exception) -> ProjectFailure:
    returncode = error.returncode if isinstance(error, VCSError) else None
    return ProjectFailure(
        name=op.project.name,
        path=op.path,
        kind=op.kind,
        message=str(error),
        returncode=returncode,
    )
