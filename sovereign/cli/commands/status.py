"""Status and overview commands."""

import asyncio
import contextlib
from typing import Annotated

import typer
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from sovereign.api.schemas import AIStatus, SystemResources
from sovereign.cli.utils import console, make_client
from sovereign.poller import PollSnapshot, StatusPoller


def status() -> None:
    """Show services, resources and AI engine status once.

    Each section is fetched independently; a failing section is reported
    on its own and does not hide the others.
    """
    asyncio.run(_show_status())


async def _show_status() -> None:
    async with make_client() as client:
        poller = StatusPoller.for_client(client)
        snapshots = await poller.poll_once()
    console.print(render_overview(snapshots))


def watch(
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between refreshes"),
    ] = None,
) -> None:
    """Keep the overview on screen, refreshing until Ctrl-C."""
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_watch(interval))


async def _watch(interval: float | None) -> None:
    async with make_client() as client:
        with Live(console=console, refresh_per_second=4) as live:
            poller = StatusPoller.for_client(
                client,
                interval=interval,
                on_update=lambda _name, _snapshot: live.update(render_overview(poller.snapshots)),
            )
            live.update(render_overview(poller.snapshots))
            poller.start()
            try:
                await asyncio.Event().wait()
            finally:
                await poller.stop()


def render_overview(snapshots: dict[str, PollSnapshot]) -> Group:
    """Build the overview renderable from poll snapshots."""
    return Group(
        _services_table(snapshots.get("services")),
        _resources_panel(snapshots.get("resources")),
        _ai_panel(snapshots.get("ai")),
    )


def _stale_note(snapshot: PollSnapshot) -> str:
    if snapshot.error is None:
        return ""
    if snapshot.data is None:
        return f"[red]unavailable: {snapshot.error}[/red]"
    return f"[yellow]stale ({snapshot.failures} failed refreshes): {snapshot.error}[/yellow]"


def _services_table(snapshot: PollSnapshot | None) -> Table:
    services = (snapshot.data if snapshot else None) or []
    running = sum(1 for s in services if s.running)
    caption = _stale_note(snapshot) if snapshot else ""

    table = Table(title=f"Services ({running}/{len(services)} running)", caption=caption or None)
    table.add_column("Service", style="cyan")
    table.add_column("State")
    table.add_column("Status")
    table.add_column("Ports")
    table.add_column("Image", style="dim")

    for service in services:
        state = "[green]running[/green]" if service.running else "[red]stopped[/red]"
        table.add_row(service.name, state, service.status, service.ports or "-", service.image)
    return table


def _resources_panel(snapshot: PollSnapshot | None) -> Panel:
    resources: SystemResources | None = snapshot.data if snapshot else None
    if resources is None:
        body = _stale_note(snapshot) if snapshot else "[dim]waiting...[/dim]"
        return Panel(body or "[dim]waiting...[/dim]", title="System Resources", border_style="blue")

    gpu = resources.gpu_name or "None (CPU inference)"
    if resources.gpu_memory_mb:
        gpu = f"{gpu} ({resources.gpu_memory_mb} MB)"
    lines = [
        f"[bold]CPU:[/bold] {resources.cpu_model or 'unknown'} ({resources.cpu_cores} cores)",
        f"[bold]RAM:[/bold] {resources.ram_total_mb / 1024:.1f} GB",
        f"[bold]Disk:[/bold] {resources.disk_free_gb:.0f} GB free of "
        f"{resources.disk_total_gb:.0f} GB ({resources.disk_used_percent}% used)",
        f"[bold]GPU:[/bold] {gpu}",
    ]
    if snapshot and snapshot.error:
        lines.append(_stale_note(snapshot))
    return Panel("\n".join(lines), title="System Resources", border_style="blue")


def _ai_panel(snapshot: PollSnapshot | None) -> Panel:
    ai: AIStatus | None = snapshot.data if snapshot else None
    if ai is None:
        body = _stale_note(snapshot) if snapshot else ""
        return Panel(body or "[dim]waiting...[/dim]", title="AI Inference", border_style="magenta")

    engine = "[green]🟢 running[/green]" if ai.running else "[red]🔴 not reachable[/red]"
    lines = [
        f"[bold]Engine:[/bold] {ai.engine or 'llama-server'} {engine}",
        f"[bold]Model:[/bold] {ai.model or '-'}",
        f"[bold]GPU tier:[/bold] {ai.gpu_tier or '-'} (recommended: {ai.recommended or '-'})",
    ]
    if snapshot and snapshot.error:
        lines.append(_stale_note(snapshot))
    return Panel("\n".join(lines), title="AI Inference", border_style="magenta")
