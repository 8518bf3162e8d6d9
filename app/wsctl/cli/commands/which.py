"""Which command implementation.

This module provides the `wsctl which` command for locating tools
installed in the workspace.
"""

from typing import Annotated

import typer

from wsctl.cli.types import require_workspace
from wsctl.utils.formatting import print_error


def which(
    tool: Annotated[str, typer.Argument(help="Tool name.")],
) -> None:
    """Print the path of a tool installed in the workspace.

    A build for the host target (bin/<os>_<arch>/<tool>) is preferred over
    the generic one. WSCTL_ARCH selects another architecture.

    Examples:
        wsctl which wsctl-helper
    """
    workspace = require_workspace()
    path = workspace.find_tool(tool)
    if path is None:
        print_error(f"Tool {tool} is not installed in {workspace.bin_dir}")
        raise typer.Exit(code=1)
    typer.echo(str(path))
