"""Import resolution.

Builds a single consolidated manifest from the root manifest and every
manifest it imports, directly or transitively.

Merge policy: projects, hosts and tools are keyed by name. Within each
manifest its imports are resolved first, in declaration order, followed by
its own declarations. A later declaration replaces an earlier one with the
same name, so a later import wins over an earlier sibling import and a
manifest wins over anything it imports. Hosts and tools follow the same
rule as projects.

Fetching and parsing are separate steps: remote imports are made available
on disk by an ImportFetcher, and manifests are read by a reader callable
(load_manifest by default) so that resolution can run over in-memory
documents.
"""

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from wsctl.core.manifest import ManifestError, ManifestValidationError, load_manifest
from wsctl.core.projects import converge_checkout, create_checkout, scan_local_projects
from wsctl.core.workspace import Workspace
from wsctl.models.manifest import FileImport, Host, Manifest, Project, RemoteImport, Tool
from wsctl.vcs.base import VCS

logger = logging.getLogger(__name__)


class ImportCycleError(ManifestError):
    """Raised when manifests import each other in a cycle.

    Attributes:
        chain: Manifest identities along the cycle, first and last equal.
    """

    def __init__(self, chain: list[str]) -> None:
        self.chain = chain
        super().__init__("import cycle: " + " -> ".join(chain))


class ImportFetcher(ABC):
    """Makes the project providing a remote import available on disk."""

    @abstractmethod
    def fetch(self, project: Project) -> Path:
        """Ensure the manifest-providing project is checked out.

        Args:
            project: The project implied by a remote import.

        Returns:
            Directory of the checkout.

        Raises:
            VCSError: If the project cannot be cloned or updated.
        """


class VCSImportFetcher(ImportFetcher):
    """Fetches manifest-providing projects into the workspace with a VCS client.

    A project already checked out is brought to the tip of its branch
    (which is a no-op when it is current); otherwise it is cloned at its
    declared location.
    """

    def __init__(self, workspace: Workspace, vcs: VCS, *, update: bool = True) -> None:
        """Initialize the fetcher.

        Args:
            workspace: Workspace the projects live in.
            vcs: Client used to clone and update.
            update: If False, existing checkouts are used as they are.
        """
        self._workspace = workspace
        self._vcs = vcs
        self._update = update
        self._local: dict[str, Project] | None = None
        self._fetched: dict[str, Path] = {}

    def fetch(self, project: Project) -> Path:
        if project.name in self._fetched:
            return self._fetched[project.name]

        if self._local is None:
            self._local = scan_local_projects(self._workspace)

        local = self._local.get(project.name)
        if local is not None:
            directory = self._workspace.project_dir(local.path)
            if self._update:
                converge_checkout(self._vcs, project, directory)
        else:
            directory = self._workspace.project_dir(project.path)
            logger.info("Fetching manifest project %s into %s", project.name, directory)
            create_checkout(self._vcs, project, directory, self._workspace)
            self._local[project.name] = project

        self._fetched[project.name] = directory
        return directory


@dataclass
class _Consolidation:
    """Entities accumulated during one resolution."""

    projects: dict[str, Project] = field(default_factory=dict)
    hosts: dict[str, Host] = field(default_factory=dict)
    tools: dict[str, Tool] = field(default_factory=dict)

    def add_project(self, project: Project, source: str) -> None:
        if project.name in self.projects:
            logger.debug("Project %s from %s overrides earlier declaration", project.name, source)
        self.projects[project.name] = project

    def add_host(self, host: Host, source: str) -> None:
        if host.name in self.hosts:
            logger.debug("Host %s from %s overrides earlier declaration", host.name, source)
        self.hosts[host.name] = host

    def add_tool(self, tool: Tool, source: str) -> None:
        if tool.name in self.tools:
            logger.debug("Tool %s from %s overrides earlier declaration", tool.name, source)
        self.tools[tool.name] = tool

    def expand_remote(self, remote: str, pending: dict[str, Host] | None = None) -> str:
        """Expand a "<host>:<path>" remote when <host> names a declared host.

        Hosts in ``pending`` (those of the manifest being visited, not merged
        yet) take precedence over the ones merged so far.
        """
        hosts = {**self.hosts, **pending} if pending else self.hosts
        prefix, sep, rest = remote.partition(":")
        if sep and prefix in hosts and not rest.startswith("//"):
            return hosts[prefix].expand(rest)
        return remote


def _join_root(root: str, path: str) -> str:
    if not root:
        return path
    return PurePosixPath(root, path).as_posix()


class Resolver:
    """Resolves a root manifest and its imports into one consolidated manifest.

    Example:
        >>> resolver = Resolver(VCSImportFetcher(workspace, GitClient()))
        >>> universe = resolver.resolve(workspace.manifest_path)
    """

    def __init__(
        self,
        fetcher: ImportFetcher | None = None,
        reader: Callable[[Path], Manifest] = load_manifest,
    ) -> None:
        """Initialize the resolver.

        Args:
            fetcher: Provides remote imports. Without one, remote imports are an error.
            reader: Reads and parses one manifest file.
        """
        self._fetcher = fetcher
        self._reader = reader

    def resolve(self, root_manifest: Path) -> Manifest:
        """Resolve a manifest and everything it imports.

        Args:
            root_manifest: Path of the entry-point manifest.

        Returns:
            Manifest without imports whose projects, hosts and tools are the
            consolidated, validated universe, each list sorted by name.

        Raises:
            ManifestError: If any manifest is missing or malformed, if the
                imports form a cycle, or if the consolidated result is invalid.
            VCSError: If a remote import cannot be fetched.
        """
        state = _Consolidation()
        self._visit(root_manifest, f"file:{os.path.realpath(root_manifest)}", "", [], state)
        return self._finish(state)

    def _visit(
        self,
        path: Path,
        identity: str,
        root: str,
        stack: list[str],
        state: _Consolidation,
    ) -> None:
        if identity in stack:
            chain = stack[stack.index(identity) :] + [identity]
            raise ImportCycleError([_label(i) for i in chain])

        stack.append(identity)
        manifest = self._reader(path)
        source = str(path)

        own_hosts = {h.name: h for h in manifest.hosts}
        for entry in manifest.imports:
            if isinstance(entry, RemoteImport):
                self._visit_remote(entry, root, stack, state, source, own_hosts)
            else:
                self._visit_file(entry, path, root, stack, state)

        for project in manifest.projects:
            if root:
                project = project.model_copy(update={"path": _join_root(root, project.path)})
            state.add_project(project, source)
        for host in manifest.hosts:
            state.add_host(host, source)
        for tool in manifest.tools:
            state.add_tool(tool, source)

        stack.pop()

    def _visit_remote(
        self,
        entry: RemoteImport,
        root: str,
        stack: list[str],
        state: _Consolidation,
        source: str,
        own_hosts: dict[str, Host],
    ) -> None:
        if self._fetcher is None:
            raise ManifestError(f"{source}: cannot resolve remote import {entry.key}")

        remote = state.expand_remote(entry.remote, own_hosts)
        entry = entry.model_copy(update={"remote": remote})
        project = Project(
            name=entry.name,
            path=_join_root(root, entry.checkout_path()),
            remote=entry.remote,
            remote_branch=entry.remote_branch,
        )
        state.add_project(project, source)
        directory = self._fetcher.fetch(project)
        self._visit(
            directory / entry.manifest,
            f"remote:{entry.key}",
            _join_root(root, entry.root) if entry.root else root,
            stack,
            state,
        )

    def _visit_file(
        self,
        entry: FileImport,
        importer: Path,
        root: str,
        stack: list[str],
        state: _Consolidation,
    ) -> None:
        path = importer.parent / entry.file
        self._visit(path, f"file:{os.path.realpath(path)}", root, stack, state)

    def _finish(self, state: _Consolidation) -> Manifest:
        projects = [
            p.model_copy(update={"remote": state.expand_remote(p.remote)})
            for p in state.projects.values()
        ]
        _validate_paths(projects)
        for tool in state.tools.values():
            if tool.project not in state.projects:
                raise ManifestValidationError(
                    f"tool {tool.name} refers to undeclared project {tool.project}"
                )
        return Manifest(
            projects=sorted(projects, key=lambda p: p.name),
            hosts=sorted(state.hosts.values(), key=lambda h: h.name),
            tools=sorted(state.tools.values(), key=lambda t: t.name),
        )


def _label(identity: str) -> str:
    """Human-readable form of a manifest identity."""
    return identity.split(":", 1)[1]


def _validate_paths(projects: list[Project]) -> None:
    """Check that project paths are unique and that no project contains another.

    Raises:
        ManifestValidationError: On a duplicate or nested path.
    """
    by_path: dict[str, str] = {}
    for project in sorted(projects, key=lambda p: p.name):
        if project.path in by_path:
            raise ManifestValidationError(
                f"projects {by_path[project.path]} and {project.name} "
                f"share the path {project.path}"
            )
        by_path[project.path] = project.name
    for path, name in by_path.items():
        for parent in PurePosixPath(path).parents:
            owner = by_path.get(parent.as_posix())
            if owner is not None:
                raise ManifestValidationError(
                    f"project {name} at {path} is nested inside project {owner} at {parent}"
                )
