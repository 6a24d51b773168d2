"""CLI entry point and base commands.

Provides the main CLI application with commands for:
- status / watch: Server overview
- apps: Marketplace apps
- ai: Models, downloads and chat
"""

from typing import Annotated

import typer
from rich.panel import Panel

from sovereign import __version__
from sovereign.cli.commands.ai import ai_app
from sovereign.cli.commands.apps import apps_app
from sovereign.cli.commands.status import status, watch
from sovereign.cli.utils import console, set_api_url
from sovereign.logging_config import configure_logging

app = typer.Typer(
    name="sovereign",
    help="Command-line dashboard for a Sovereign Stack server",
    add_completion=False,
    no_args_is_help=True,
)

app.command()(status)
app.command()(watch)
app.add_typer(apps_app, name="apps")
app.add_typer(ai_app, name="ai")


@app.callback()
def main(
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Dashboard URL (defaults to SOVEREIGN_API_URL)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Sovereign Stack dashboard client."""
    configure_logging("DEBUG" if verbose else None)
    set_api_url(url)


@app.command()
def version() -> None:
    """Show version information."""
    from sovereign.settings import get_settings

    settings = get_settings()
    console.print(
        Panel(
            f"[bold]Sovereign Dashboard[/bold] v{__version__}\n"
            f"Server: {settings.api_url}\n"
            f"Environment: {settings.environment}",
            title="Version",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
