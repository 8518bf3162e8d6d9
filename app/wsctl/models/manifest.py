"""Manifest models for declarative workspace configuration.

This module defines the Pydantic models representing a manifest document:
the imports, projects, hosts, and tools that describe the desired workspace.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Revision value meaning "track the tip of remote_branch"
HEAD_REVISION = "HEAD"
DEFAULT_BRANCH = "main"


def normalize_relative_path(value: str) -> str:
    """Normalize a workspace-relative path.

    Args:
        value: Path as written in a manifest.

    Returns:
        POSIX path with redundant separators and "." components removed.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the workspace.
    """
    path = PurePosixPath(value.strip())
    if not value.strip() or path.is_absolute():
        msg = f"path must be a non-empty relative path, got {value!r}"
        raise ValueError(msg)
    parts = [p for p in path.parts if p != "."]
    if not parts:
        msg = f"path must not be the workspace root, got {value!r}"
        raise ValueError(msg)
    if ".." in parts:
        msg = f"path must not contain '..', got {value!r}"
        raise ValueError(msg)
    return PurePosixPath(*parts).as_posix()


class RemoteImport(BaseModel):
    """Import of a manifest that lives inside a remote repository.

    Attributes:
        name: Name of the manifest-providing project.
        manifest: Path of the manifest file inside that project.
        remote: Remote URL of the manifest-providing project.
        remote_branch: Branch whose tip provides the manifest.
        root: Root mount prefixed to every project path the import declares.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1, description="Manifest project name")]
    manifest: Annotated[str, Field(min_length=1, description="Manifest file in the project")]
    remote: Annotated[str, Field(min_length=1, description="Remote URL of the project")]
    remote_branch: Annotated[str, Field(description="Branch to read")] = DEFAULT_BRANCH
    root: Annotated[str, Field(description="Root mount for imported projects")] = ""

    @property
    def key(self) -> str:
        """Identity of the imported manifest, used for cycle detection."""
        return f"{self.remote} + {self.manifest}"

    def checkout_path(self) -> str:
        """Workspace-relative location of the manifest-providing project."""
        if self.root:
            return normalize_relative_path(f"{self.root}/{self.name}")
        return normalize_relative_path(self.name)


class FileImport(BaseModel):
    """Include of another manifest file next to the importing one.

    Attributes:
        file: Path relative to the directory of the importing manifest.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    file: Annotated[str, Field(min_length=1, description="Relative manifest path")]


class Project(BaseModel):
    """A single managed repository checkout.

    Attributes:
        name: Unique project name.
        path: Workspace-relative checkout location.
        remote: Remote URL, or "<host>:<path>" relative to a declared host.
        remote_branch: Branch tracked when the revision is HEAD.
        revision: Pinned revision, or HEAD to follow remote_branch.
        githooks: Workspace-relative directory of git hooks to install.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1, description="Unique project name")]
    path: Annotated[str, Field(description="Workspace-relative checkout path")]
    remote: Annotated[str, Field(min_length=1, description="Remote URL")]
    remote_branch: Annotated[str, Field(description="Tracked branch")] = DEFAULT_BRANCH
    revision: Annotated[str, Field(description="Pinned revision or HEAD")] = HEAD_REVISION
    githooks: Annotated[str | None, Field(description="Git hooks directory")] = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Normalize the checkout path and reject paths outside the workspace."""
        return normalize_relative_path(v)

    @property
    def tracks_head(self) -> bool:
        """True if the project follows the tip of its remote branch."""
        return self.revision == HEAD_REVISION


class Host(BaseModel):
    """Named alias for a remote location.

    Attributes:
        name: Host alias used as "<name>:<path>" in project remotes.
        location: Base URL the alias expands to.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1, description="Host alias")]
    location: Annotated[str, Field(min_length=1, description="Base URL")]

    def expand(self, relative: str) -> str:
        """Expand a host-relative remote path to a full URL."""
        return f"{self.location.rstrip('/')}/{relative.lstrip('/')}"


class Tool(BaseModel):
    """An executable built by a project.

    Attributes:
        name: Tool (executable) name.
        project: Name of the project providing the tool.
        data: Per-tool data directory inside the providing project.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1, description="Tool name")]
    project: Annotated[str, Field(min_length=1, description="Providing project")]
    data: Annotated[str, Field(description="Data subdirectory")] = "data"


class Manifest(BaseModel):
    """A manifest document.

    Order is significant: imports are resolved in declaration order and a
    later declaration of the same name overrides an earlier one.

    Attributes:
        imports: Remote and file imports.
        projects: Declared projects.
        hosts: Declared host aliases.
        tools: Declared tools.
    """

    model_config = ConfigDict(extra="forbid")

    imports: Annotated[
        list[RemoteImport | FileImport],
        Field(default_factory=list, description="Imported manifests"),
    ]
    projects: Annotated[list[Project], Field(default_factory=list, description="Projects")]
    hosts: Annotated[list[Host], Field(default_factory=list, description="Host aliases")]
    tools: Annotated[list[Tool], Field(default_factory=list, description="Tools")]

    @property
    def remote_imports(self) -> list[RemoteImport]:
        """Remote imports, in declaration order."""
        return [i for i in self.imports if isinstance(i, RemoteImport)]

    def project_by_name(self, name: str) -> Project | None:
        """Find a declared project by name."""
        for project in self.projects:
            if project.name == name:
                return project
        return None
