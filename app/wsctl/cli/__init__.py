"""CLI package for wsctl.

This package contains the Typer application and all subcommands.
"""

from wsctl.cli.main import app

__all__ = ["app"]
