"""
Sync Commands.

Inspect and drain the queue of changes waiting for the cloud copy.
"""

import typer
from rich.panel import Panel
from rich.table import Table

from memos.cli.client import console, open_application, run_command
from memos.schemas.sync import SyncStatus

app = typer.Typer(help="Cloud sync commands")

_STATUS_COLORS = {
    SyncStatus.SYNCED: "green",
    SyncStatus.FAILED: "red",
    SyncStatus.COALESCED: "yellow",
    SyncStatus.OFFLINE: "yellow",
    SyncStatus.SUPPRESSED: "dim",
}


@app.command()
def now() -> None:
    """
    Push queued changes now (requires --online and a signed-in user).

    Examples:
        cli.py --user-id u1 --email me@example.com --online sync now
    """
    run_command(_now())


async def _now() -> None:
    async with open_application() as memo_app:
        report = await memo_app.sync_now()
        color = _STATUS_COLORS[report.status]
        console.print(
            f"[{color}]{report.status.value}[/{color}] "
            f"applied={report.applied} remaining={report.remaining}"
        )
        if report.status == SyncStatus.FAILED:
            raise typer.Exit(1)


@app.command()
def status() -> None:
    """
    Show whether sync is active and what is queued.
    """
    run_command(_status())


async def _status() -> None:
    async with open_application() as memo_app:
        coordinator = memo_app.coordinator
        enabled = coordinator.sync_enabled()
        console.print(Panel(
            f"Sync: {'[green]enabled[/green]' if enabled else '[dim]disabled[/dim]'}\n"
            f"Connectivity: {coordinator.state.value}\n"
            f"Queued: {len(memo_app.queue)}",
            title="Sync Status",
        ))

        pending = memo_app.queue.pending()
        if not pending:
            return
        table = Table(show_header=True)
        table.add_column("Operation", style="cyan")
        table.add_column("Type")
        table.add_column("Notes")
        table.add_column("Queued at")
        for op in pending:
            table.add_row(
                op.id,
                op.type.value,
                ", ".join(sorted(op.note_ids())) or "-",
                op.enqueued_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
        console.print(table)
