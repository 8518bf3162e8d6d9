"""Import command implementation.

This module provides the `wsctl import` command, which adds a remote
manifest import to the root manifest of the workspace.
"""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from wsctl.cli.types import require_workspace
from wsctl.core.manifest import (
    ManifestError,
    ManifestNotFoundError,
    dump_manifest,
    load_manifest,
    save_manifest,
)
from wsctl.models.manifest import DEFAULT_BRANCH, Manifest, RemoteImport
from wsctl.utils.formatting import print_error, print_success

DEFAULT_IMPORT_NAME = "manifest"


def add_import(manifest: Manifest, entry: RemoteImport) -> Manifest:
    """Add a remote import, replacing any import of the same manifest.

    Args:
        manifest: Manifest to extend.
        entry: Import to add.

    Returns:
        New manifest with the import appended (or replaced in place).
    """
    imports = list(manifest.imports)
    for i, existing in enumerate(imports):
        if isinstance(existing, RemoteImport) and existing.key == entry.key:
            imports[i] = entry
            break
    else:
        imports.append(entry)
    return manifest.model_copy(update={"imports": imports})


def import_manifest(
    manifest: Annotated[
        str,
        typer.Argument(help="Manifest file, relative to the root of the remote repository."),
    ],
    remote: Annotated[
        str,
        typer.Argument(help="Remote manifest repository."),
    ],
    name: Annotated[
        str,
        typer.Option(
            "--name",
            help="Name of the remote manifest project.",
        ),
    ] = DEFAULT_IMPORT_NAME,
    remote_branch: Annotated[
        str,
        typer.Option(
            "--remote-branch",
            help="Branch of the remote manifest project to track.",
        ),
    ] = DEFAULT_BRANCH,
    root: Annotated[
        str,
        typer.Option(
            "--root",
            help="Directory the manifest project and its projects are placed under.",
        ),
    ] = "",
    overwrite: Annotated[
        bool,
        typer.Option(
            "--overwrite",
            help="Ignore the existing root manifest and write a new one.",
        ),
    ] = False,
    out: Annotated[
        str | None,
        typer.Option(
            "--out",
            "-o",
            help="Output file (default: the root manifest). Use '-' for stdout.",
        ),
    ] = None,
) -> None:
    """Add a remote manifest import to the root manifest.

    The root manifest is created if it doesn't exist yet. Otherwise the
    import is added to the imports it already has, replacing an import of
    the same manifest from the same remote.

    Examples:
        wsctl import public https://example.com/manifest.git
        wsctl import public https://example.com/manifest.git --root vendor
        wsctl import public https://example.com/manifest.git --out -
    """
    workspace = require_workspace()

    try:
        entry = RemoteImport(
            name=name,
            manifest=manifest,
            remote=remote,
            remote_branch=remote_branch,
            root=root,
        )
    except ValidationError as e:
        print_error(f"Invalid import: {e}")
        raise typer.Exit(code=1) from e

    current = Manifest()
    if not overwrite:
        try:
            current = load_manifest(workspace.manifest_path)
        except ManifestNotFoundError:
            pass
        except ManifestError as e:
            print_error(f"Failed to load manifest: {e}")
            raise typer.Exit(code=1) from e

    updated = add_import(current, entry)

    if out == "-":
        typer.echo(dump_manifest(updated), nl=False)
        return

    destination = Path(out) if out else workspace.manifest_path
    try:
        save_manifest(updated, destination, lock_path=workspace.lock_path("manifest"))
    except ManifestError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Added import {entry.key} to {destination}")
