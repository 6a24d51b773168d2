"""Shared CLI helpers: console, client factory, error reporting."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import Callable, Iterator

import typer
from rich.console import Console

from sovereign.api.client import DashboardClient
from sovereign.exceptions import CollaboratorError, ConfigurationError, TransportError
from sovereign.streaming.context import Message

console = Console()

_state: dict[str, str | None] = {"api_url": None}


def set_api_url(url: str | None) -> None:
    _state["api_url"] = url


def make_client() -> DashboardClient:
    """Dashboard client for the URL given on the command line, else settings."""
    try:
        return DashboardClient(_state["api_url"])
    except ConfigurationError as e:
        raise fail(str(e)) from e


def fail(message: str) -> typer.Exit:
    """Print an error and return the exit to raise."""
    console.print(f"[red]{message}[/red]")
    return typer.Exit(code=1)


def report_error(error: Exception) -> typer.Exit:
    if isinstance(error, CollaboratorError):
        return fail(f"❌ {error}")
    if isinstance(error, TransportError):
        return fail(f"Dashboard unreachable: {error}")
    return fail(str(error))


@contextlib.contextmanager
def interrupt_calls(callback: Callable[[], object]) -> Iterator[None]:
    """Route Ctrl-C to ``callback`` instead of stopping the event loop.

    Only available in the main thread on platforms with loop signal
    handlers; elsewhere Ctrl-C keeps its default behaviour.
    """
    loop = asyncio.get_running_loop()
    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, callback)
        installed = True
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


class ReplyPrinter:
    """Print only the part of a growing reply not yet shown."""

    def __init__(self) -> None:
        self.printed = 0

    def __call__(self, message: Message) -> None:
        delta = message.content[self.printed :]
        if delta:
            console.print(delta, end="", markup=False, highlight=False, soft_wrap=True)
            self.printed = len(message.content)
