"""
Application Access for CLI.

Opens a MemoApplication for the duration of one command. The session and
connectivity come from global CLI options, so every command sees the same
identity rules as any other front end.
"""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import typer
from rich.console import Console

from memos.app import MemoApplication, create_application
from memos.core.exceptions import ApplicationError
from memos.core.logging import get_logger, log_with_source
from memos.schemas.note import Note
from memos.services.notifications import UNTITLED, AlertType, LoggingDispatcher
from memos.services.session import LocalSession

logger = get_logger(__name__)

console = Console()

_ALERT_STYLES = {
    AlertType.INFO: "cyan",
    AlertType.SUCCESS: "green",
    AlertType.WARNING: "yellow",
    AlertType.ERROR: "red",
}


@dataclass
class CliOptions:
    """Global options collected by the root callback."""

    user_id: str | None = None
    email: str | None = None
    guest: bool = False
    online: bool = False


_options = CliOptions()


def configure(options: CliOptions) -> None:
    """Replace the global options for the current invocation."""
    global _options
    _options = options


def get_options() -> CliOptions:
    return _options


class ConsoleDispatcher(LoggingDispatcher):
    """Dispatcher that also prints notifications to the terminal."""

    def reminder(self, note: Note) -> None:
        super().reminder(note)
        console.print(f"[bold yellow]⏰ Reminder:[/bold yellow] {note.title or UNTITLED} [dim]({note.id})[/dim]")

    def status(self, message: str, level: AlertType = AlertType.INFO) -> None:
        super().status(message, level)
        color = _ALERT_STYLES[level]
        console.print(f"[{color}]{message}[/{color}]")


def build_session(options: CliOptions) -> LocalSession:
    """
    Create the session described by the CLI options.

    A user id with an email signs in; anything else is a guest.
    """
    session = LocalSession()
    if options.user_id and options.email and not options.guest:
        session.sign_in(options.user_id, options.email)
    else:
        session.sign_in_guest()
    return session


@asynccontextmanager
async def open_application() -> AsyncIterator[MemoApplication]:
    """
    Start the application, yield it, and flush it on exit.

    When started online, queued changes from earlier commands are drained
    before the command runs.
    """
    options = get_options()
    app = create_application(
        dispatcher=ConsoleDispatcher(),
        session=build_session(options),
    )
    app.start()
    log_with_source(logger, "cli", "debug", "Application opened", online=options.online)
    try:
        if options.online:
            await app.set_online(True)
        yield app
    finally:
        await app.stop()


def run_command(coro: Coroutine[Any, Any, None]) -> None:
    """
    Run an async command body, turning application errors into exit code 1.
    """
    try:
        asyncio.run(coro)
    except ApplicationError as e:
        log_with_source(logger, "cli", "debug", "Command failed", code=e.code, error=e.message)
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1) from e
