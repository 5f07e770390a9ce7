"""
Reminder Commands.

List pending reminders, deliver due ones, or keep running so the periodic
reminder scan and sync drain fire on schedule.
"""

import typer
from rich.table import Table

from memos.cli.client import console, open_application, run_command
from memos.core.logging import get_logger, log_with_source
from memos.services.notifications import UNTITLED

app = typer.Typer(help="Reminder commands")

logger = get_logger(__name__)


@app.command()
def upcoming() -> None:
    """
    List reminders that have not come due yet.
    """
    run_command(_upcoming())


async def _upcoming() -> None:
    async with open_application() as memo_app:
        notes = memo_app.scanner.upcoming()
        if not notes:
            console.print("[dim]No upcoming reminders[/dim]")
            return
        table = Table(title="Upcoming Reminders", show_header=True)
        table.add_column("When", style="cyan")
        table.add_column("Note")
        table.add_column("ID", style="dim")
        for note in notes:
            table.add_row(note.reminder.strftime("%Y-%m-%d %H:%M"), note.title or UNTITLED, note.id)
        console.print(table)


@app.command()
def scan() -> None:
    """
    Deliver every reminder that is due now.
    """
    run_command(_scan())


async def _scan() -> None:
    async with open_application() as memo_app:
        due = memo_app.scan_reminders()
        if not due:
            console.print("[dim]Nothing due[/dim]")


@app.command()
def watch() -> None:
    """
    Run in the foreground, delivering reminders and syncing on schedule.

    Stop with Ctrl+C.
    """
    console.print("[bold]Watching for reminders[/bold] [dim](Ctrl+C to stop)[/dim]")
    try:
        run_command(_watch())
    except KeyboardInterrupt:
        log_with_source(logger, "cli", "info", "Watch interrupted")
        console.print("\n[dim]Stopped[/dim]")


async def _watch() -> None:
    async with open_application() as memo_app:
        await memo_app.run()
