"""App marketplace commands."""

import asyncio
from typing import Annotated

import typer
from rich.table import Table

from sovereign.cli.utils import console, make_client, report_error
from sovereign.exceptions import SovereignError

apps_app = typer.Typer(help="Browse, install and remove marketplace apps")

_PROGRESS_VERBS = {"install": "Installing", "remove": "Removing"}


@apps_app.command("list")
def list_apps(
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help="Only show apps in this category"),
    ] = None,
    installed: Annotated[
        bool,
        typer.Option("--installed", help="Only show installed apps"),
    ] = False,
) -> None:
    """List marketplace apps."""
    asyncio.run(_list_apps(category, installed))


async def _list_apps(category: str | None, installed_only: bool) -> None:
    try:
        async with make_client() as client:
            apps = await client.list_apps()
    except SovereignError as e:
        raise report_error(e) from e

    if category:
        apps = [a for a in apps if a.category.lower() == category.lower()]
    if installed_only:
        apps = [a for a in apps if a.installed]

    if not apps:
        console.print("[dim]No apps found.[/dim]")
        return

    table = Table(title=f"Apps ({len(apps)})")
    table.add_column("Name", style="cyan")
    table.add_column("App")
    table.add_column("Category")
    table.add_column("Version", style="dim")
    table.add_column("Installed")

    for app in apps:
        table.add_row(
            app.name,
            app.display_name or app.name,
            app.category or "-",
            app.version or "-",
            "[green]✓[/green]" if app.installed else "",
        )
    console.print(table)


@apps_app.command("install")
def install(name: Annotated[str, typer.Argument(help="App name")]) -> None:
    """Install an app."""
    asyncio.run(_run_action("install", name))


@apps_app.command("remove")
def remove(name: Annotated[str, typer.Argument(help="App name")]) -> None:
    """Remove an installed app."""
    asyncio.run(_run_action("remove", name))


async def _run_action(action: str, name: str) -> None:
    with console.status(f"{_PROGRESS_VERBS[action]} {name}..."):
        try:
            async with make_client() as client:
                if action == "install":
                    result = await client.install_app(name)
                else:
                    result = await client.remove_app(name)
        except SovereignError as e:
            raise report_error(e) from e

    console.print(f"[green]✅ {result.message or f'{name}: {action} ok'}[/green]")
