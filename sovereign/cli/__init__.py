"""CLI application setup using Typer.

Provides the ``sovereign`` command-line interface to the dashboard.
"""

from sovereign.cli.main import app

__all__ = ["app"]
