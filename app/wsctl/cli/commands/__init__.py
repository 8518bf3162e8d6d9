"""CLI commands for wsctl.

This package contains all subcommand implementations.
"""

from wsctl.cli.commands import (
    history,
    import_,
    profile,
    project,
    rollback,
    snapshot,
    update,
    which,
)

__all__ = [
    "history",
    "import_",
    "profile",
    "project",
    "rollback",
    "snapshot",
    "update",
    "which",
]
