"""
CLI Application.

Root Typer app: global options, logging setup and command groups.
"""

from typing import Optional

import typer
from rich.console import Console

from memos.cli.client import CliOptions, configure
from memos.cli.commands import notes_app, reminders_app, session_app, sync_app, tags_app
from memos.core.config import find_project_root, get_app_config
from memos.core.logging import setup_logging

app = typer.Typer(
    name="memos",
    help="Memos CLI - Notes, tags, reminders and cloud sync from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.add_typer(notes_app, name="notes")
app.add_typer(tags_app, name="tags")
app.add_typer(reminders_app, name="reminders")
app.add_typer(sync_app, name="sync")
app.add_typer(session_app, name="session")


def _validate_project_root() -> None:
    """Validate that we're running inside the project."""
    try:
        find_project_root()
    except RuntimeError:
        console.print("[red]Error: .project_root not found. Run from project root.[/red]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """
    Display version information.
    """
    console.print(f"[bold]{get_app_config().application.version}[/bold]")


@app.callback()
def main(
    user_id: Optional[str] = typer.Option(
        None,
        "--user-id",
        envvar="MEMOS_USER_ID",
        help="Signed-in user id (guest when omitted)",
    ),
    email: Optional[str] = typer.Option(
        None,
        "--email",
        envvar="MEMOS_USER_EMAIL",
        help="Signed-in user email",
    ),
    guest: bool = typer.Option(False, "--guest", help="Force a guest session"),
    online: bool = typer.Option(
        False,
        "--online/--offline",
        help="Treat the network as available (drains queued changes)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
) -> None:
    """
    Memos CLI.

    Every command loads the local snapshot, applies one change and saves it.
    Built with Typer for type-safe commands and Rich for formatted output.
    """
    _validate_project_root()

    if debug:
        setup_logging(level="DEBUG", format_type="console")
        console.print("[dim]Debug mode enabled[/dim]")
    elif verbose:
        setup_logging(level="INFO", format_type="console")
    else:
        setup_logging(level="WARNING")

    configure(CliOptions(user_id=user_id, email=email, guest=guest, online=online))


def run() -> None:
    """Console script entry point."""
    app()
