"""
Session Commands.

Identity comes from the global --user-id/--email/--guest options.
"""

import typer
from rich.panel import Panel

from memos.cli.client import console, get_options, open_application, run_command

app = typer.Typer(help="Session commands")


@app.command()
def whoami() -> None:
    """
    Show who the current invocation runs as.
    """
    run_command(_whoami())


async def _whoami() -> None:
    async with open_application() as memo_app:
        user = memo_app.session.user
        if memo_app.session.is_guest():
            body = "[yellow]Guest[/yellow]\nNotes stay on this device and are not synced."
        else:
            body = f"[green]{user.name}[/green] <{user.email}>\nUser ID: {user.id}"
        console.print(Panel(body, title="Session"))


@app.command()
def logout(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Sign out. Signing out of a guest session deletes all local notes.
    """
    if get_options().guest or not get_options().user_id:
        if not yes:
            typer.confirm("Guest notes will be deleted. Continue?", abort=True)
    run_command(_logout())


async def _logout() -> None:
    async with open_application() as memo_app:
        was_guest = memo_app.session.is_guest()
        memo_app.sign_out()
        if was_guest:
            console.print("[green]✓ Signed out, guest data cleared[/green]")
        else:
            console.print("[green]✓ Signed out[/green]")
