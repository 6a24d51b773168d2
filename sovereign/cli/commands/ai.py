"""AI inference commands: engine status, models, catalog, pulls, questions."""

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from sovereign.cli.commands.chat import chat
from sovereign.cli.utils import ReplyPrinter, console, fail, interrupt_calls, make_client, report_error
from sovereign.exceptions import SovereignError
from sovereign.streaming import ProgressState, ProgressTracker, SessionState, ask_server

ai_app = typer.Typer(help="Local AI inference: models, downloads and chat")
ai_app.command("chat")(chat)


@ai_app.command("status")
def status() -> None:
    """Show the inference engine and companion device status."""
    asyncio.run(_show_status())


async def _show_status() -> None:
    try:
        async with make_client() as client:
            ai, phone = await asyncio.gather(client.get_ai_status(), client.get_phone_status())
    except SovereignError as e:
        raise report_error(e) from e

    engine = "[green]🟢 running[/green]" if ai.running else "[red]🔴 not reachable[/red]"
    lines = [
        f"[bold]Engine:[/bold] {ai.engine or 'llama-server'} {engine}",
        f"[bold]Host:[/bold] {ai.host or '-'} ({ai.mode or 'local'})",
        f"[bold]Model:[/bold] {ai.model or '-'}",
        f"[bold]GPU tier:[/bold] {ai.gpu_tier or '-'} (recommended: {ai.recommended or '-'})",
        f"[bold]Models dir:[/bold] {ai.models_dir or '-'}",
        f"[bold]Phone:[/bold] {phone.display_label}",
    ]
    console.print(Panel("\n".join(lines), title="🤖 AI Inference", border_style="magenta"))


@ai_app.command("models")
def models() -> None:
    """List installed models."""
    asyncio.run(_list_models())


async def _list_models() -> None:
    try:
        async with make_client() as client:
            installed = await client.list_models()
    except SovereignError as e:
        raise report_error(e) from e

    if not installed:
        console.print("[dim]No models installed. Try 'sovereign ai catalog'.[/dim]")
        return

    table = Table(title=f"Installed Models ({len(installed)})")
    table.add_column("Model", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")
    table.add_column("Active")

    for model in installed:
        modified = model.modified_at.strftime("%Y-%m-%d %H:%M") if model.modified_at else "-"
        table.add_row(
            model.name,
            f"{model.size_gb:.1f} GB",
            modified,
            "[green]●[/green]" if model.active else "",
        )
    console.print(table)


@ai_app.command("catalog")
def catalog(
    tier: Annotated[
        str | None,
        typer.Option("--tier", "-t", help="Only show models for this hardware tier"),
    ] = None,
) -> None:
    """List models available for download."""
    asyncio.run(_show_catalog(tier))


async def _show_catalog(tier: str | None) -> None:
    try:
        async with make_client() as client:
            entries = await client.get_catalog()
    except SovereignError as e:
        raise report_error(e) from e

    if tier:
        entries = [e for e in entries if e.tier.lower() == tier.lower()]

    table = Table(title=f"Model Catalog ({len(entries)})")
    table.add_column("Name", style="cyan")
    table.add_column("Model")
    table.add_column("Size", justify="right")
    table.add_column("Min RAM", justify="right")
    table.add_column("Tier")
    table.add_column("Installed")

    for entry in entries:
        table.add_row(
            entry.name,
            entry.display_name or entry.name,
            f"{entry.size_gb:.1f} GB",
            f"{entry.min_ram_mb // 1024} GB" if entry.min_ram_mb else "-",
            entry.tier or "-",
            "[green]✓[/green]" if entry.installed else "",
        )
    console.print(table)


@ai_app.command("pull")
def pull(model: Annotated[str, typer.Argument(help="Catalog model name")]) -> None:
    """Download a model, showing live progress. Ctrl-C stops the download view."""
    asyncio.run(_pull(model))


async def _pull(model: str) -> None:
    async with make_client() as client:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task_id = progress.add_task(f"Pulling {model}", total=100)

            def render(state: ProgressState) -> None:
                percent = state.percent
                progress.update(
                    task_id,
                    description=state.last_line or f"Pulling {model}",
                    completed=percent if percent is not None else progress.tasks[0].completed,
                )

            tracker = ProgressTracker(client, model, on_update=render)
            with interrupt_calls(tracker.cancel):
                state = await tracker.run()

    session = tracker.session
    if session is not None and session.state is SessionState.CANCELLED:
        console.print(f"[yellow]Stopped watching pull of {model}.[/yellow]")
        return
    if state.error:
        raise fail(f"❌ Pull failed: {state.error}")
    if state.succeeded:
        console.print(f"[green]✅ {model} downloaded.[/green]")
    else:
        console.print(f"[yellow]Pull of {model} ended without confirmation: {state.last_line}[/yellow]")


@ai_app.command("delete")
def delete(
    model: Annotated[str, typer.Argument(help="Installed model name")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete an installed model."""
    if not yes and not typer.confirm(f"Delete model {model}?"):
        raise typer.Abort()
    asyncio.run(_model_action("delete", model))


@ai_app.command("switch")
def switch(model: Annotated[str, typer.Argument(help="Installed model name")]) -> None:
    """Load a different model into the inference engine."""
    asyncio.run(_model_action("switch", model))


async def _model_action(action: str, model: str) -> None:
    try:
        async with make_client() as client:
            if action == "delete":
                result = await client.delete_model(model)
            else:
                result = await client.switch_model(model)
    except SovereignError as e:
        raise report_error(e) from e

    console.print(f"[green]✅ {result.message or f'{action} {result.model or model}: ok'}[/green]")


@ai_app.command("ask")
def ask(
    question: Annotated[str, typer.Argument(help="Question about the server")],
    model: Annotated[
        str,
        typer.Option("--model", "-m", help="Model to answer with (server default if empty)"),
    ] = "",
) -> None:
    """Ask the server a question answered with its live status as context."""
    asyncio.run(_ask(question, model))


async def _ask(question: str, model: str) -> None:
    async with make_client() as client:
        reply, session = await ask_server(client, question, model=model, on_update=ReplyPrinter())
    console.print()
    if reply.failed or session.state is SessionState.FAILED:
        raise typer.Exit(code=1)
