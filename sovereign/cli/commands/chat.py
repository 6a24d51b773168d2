"""Interactive chat command."""

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel
from rich.prompt import Prompt

from sovereign.cli.utils import ReplyPrinter, console, interrupt_calls, make_client
from sovereign.settings import get_settings
from sovereign.streaming import ChatConversation, SessionState


def chat(
    message: Annotated[
        str | None,
        typer.Argument(help="Initial message (or leave empty for interactive mode)"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model to chat with"),
    ] = None,
) -> None:
    """Chat with the server's local model.

    Replies stream in as they are generated. Ctrl-C stops the reply in
    flight and keeps what arrived so far; Ctrl-C at the prompt exits.

    Examples:
        sovereign ai chat "How do I free up disk space?"
        sovereign ai chat --model qwen2.5:7b
    """
    asyncio.run(_chat_interactive(message, model))


async def _chat_interactive(initial_message: str | None, model: str | None) -> None:
    settings = get_settings()

    async with make_client() as client:
        conversation = ChatConversation(client, model=model, settings=settings)
        console.print(
            Panel(
                f"[bold blue]{settings.greeting or 'Sovereign AI chat'}[/bold blue]\n\n"
                "Type [cyan]'exit'[/cyan] or [cyan]'quit'[/cyan] to end.\n"
                "Type [cyan]'reset'[/cyan] to start a new conversation.\n"
                "Press [cyan]Ctrl-C[/cyan] to stop a reply.",
                title=f"💬 {conversation.model}",
                border_style="blue",
            )
        )

        try:
            await _converse(conversation, initial_message, settings.greeting)
        finally:
            conversation.registry.cancel_all()

    console.print("\n[dim]Chat session ended.[/dim]")


async def _converse(conversation: ChatConversation, pending: str | None, greeting: str) -> None:
    while True:
        if pending is None:
            try:
                pending = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                return

        user_input, pending = pending.strip(), None
        if not user_input:
            continue
        if user_input.lower() in ("exit", "quit", "q"):
            return
        if user_input.lower() == "reset":
            conversation.context.reset(greeting)
            console.print("[dim]Conversation cleared.[/dim]")
            continue

        await _send(conversation, user_input)


async def _send(conversation: ChatConversation, text: str) -> None:
    console.print("[bold green]Assistant:[/bold green] ", end="")
    conversation.on_update = ReplyPrinter()
    with interrupt_calls(conversation.cancel):
        session = await conversation.send(text)
    console.print()
    if session.state is SessionState.CANCELLED:
        console.print("[dim](stopped)[/dim]")
