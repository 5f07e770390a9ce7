"""
Note Commands.

Create, edit, list, trash and share notes.
"""

from datetime import datetime
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from memos.app import MemoApplication
from memos.cli.client import console, open_application, run_command
from memos.core.exceptions import ValidationError
from memos.core.utils import to_naive_utc
from memos.schemas.note import Folder, Note, NotePatch, ShareMode
from memos.services.notifications import UNTITLED

app = typer.Typer(help="Note commands")


def _flags(note: Note) -> str:
    flags = []
    if note.is_favorite:
        flags.append("★")
    if note.is_locked:
        flags.append("🔒")
    if note.reminder is not None:
        flags.append("⏰")
    if note.share_link or note.shared_with:
        flags.append("shared")
    return " ".join(flags)


def _parse_when(value: str) -> datetime:
    """ISO 8601 time; an offset or ``Z`` is converted to UTC, a bare time is taken as UTC."""
    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError as e:
        raise ValidationError(
            "Invalid reminder time",
            details={"when": "Use ISO format, e.g. 2024-05-01T09:30"},
        ) from e


@app.command()
def new(
    title: str = typer.Option("", "--title", "-t", help="Note title"),
    content: str = typer.Option("", "--content", "-c", help="Note content"),
) -> None:
    """
    Create a new note.

    Examples:
        cli.py notes new --title "Groceries" --content "milk, eggs"
    """
    run_command(_new(title, content))


async def _new(title: str, content: str) -> None:
    async with open_application() as memo_app:
        note = memo_app.create_note(title=title, content=content)
        console.print(f"[green]✓ Created[/green] {note.id}")


@app.command("list")
def list_notes(
    folder: Folder = typer.Option(Folder.ALL, "--folder", "-f", help="Folder to list"),
    query: str = typer.Option("", "--query", "-q", help="Search title, content and tag names"),
) -> None:
    """
    List notes in a folder, newest first.

    Examples:
        cli.py notes list
        cli.py notes list --folder trash
        cli.py notes list -q groceries
    """
    run_command(_list(folder, query))


async def _list(folder: Folder, query: str) -> None:
    async with open_application() as memo_app:
        notes = memo_app.list_filtered(folder, query)
        if not notes:
            console.print("[dim]No notes[/dim]")
            return
        _print_notes(memo_app, notes, title=f"Notes ({folder.value})")


def _print_notes(memo_app: MemoApplication, notes: list[Note], title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Tags")
    table.add_column("Updated")
    table.add_column("")

    for note in notes:
        tags = ", ".join(tag.name for tag in memo_app.store.resolve_tags(note))
        table.add_row(
            note.id,
            note.title or f"[dim]{UNTITLED}[/dim]",
            tags or "-",
            note.updated_at.strftime("%Y-%m-%d %H:%M"),
            _flags(note),
        )
    console.print(table)


@app.command()
def counts() -> None:
    """
    Show how many notes each folder holds.
    """
    run_command(_counts())


async def _counts() -> None:
    async with open_application() as memo_app:
        folder_counts = memo_app.counts()
        table = Table(title="Folders", show_header=True)
        table.add_column("Folder", style="cyan")
        table.add_column("Notes", justify="right")
        for name, value in folder_counts.model_dump().items():
            table.add_row(name, str(value))
        console.print(table)


@app.command()
def show(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """
    Print a note as plain text.
    """
    run_command(_show(note_id))


async def _show(note_id: str) -> None:
    async with open_application() as memo_app:
        note = memo_app.get_note(note_id)
        if note.is_locked:
            console.print(Panel("[yellow]This note is locked[/yellow]", title=note.title or UNTITLED))
            return
        console.print(Panel(memo_app.export_text(note_id), title=note.id))
        attachments = memo_app.store.note_attachments(note_id)
        for attachment in attachments:
            console.print(f"[dim]📎 {attachment.filename} ({attachment.size} bytes) {attachment.id}[/dim]")
        if note.share_link:
            console.print(f"[dim]Link: {note.share_link}[/dim]")


@app.command()
def edit(
    note_id: str = typer.Argument(..., help="Note ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="New content"),
) -> None:
    """
    Change a note's title or content.

    Examples:
        cli.py notes edit memo-123 --title "Groceries"
    """
    run_command(_edit(note_id, title, content))


async def _edit(note_id: str, title: str | None, content: str | None) -> None:
    changes = {}
    if title is not None:
        changes["title"] = title
    if content is not None:
        changes["content"] = content
    if not changes:
        console.print("[yellow]Nothing to change[/yellow]")
        return
    async with open_application() as memo_app:
        memo_app.update_note(note_id, NotePatch(**changes))
        console.print(f"[green]✓ Updated[/green] {note_id}")


@app.command()
def delete(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """
    Move a note to the trash.
    """
    run_command(_simple(note_id, "soft_delete", "Moved to trash"))


@app.command()
def restore(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """
    Bring a note back from the trash.
    """
    run_command(_simple(note_id, "restore", "Restored"))


@app.command()
def purge(
    note_id: str = typer.Argument(..., help="Note ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Delete a note permanently.
    """
    if not yes:
        typer.confirm(f"Permanently delete {note_id}?", abort=True)
    run_command(_simple(note_id, "permanently_delete", "Deleted permanently"))


@app.command()
def favorite(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """
    Toggle a note's favorite flag.
    """
    run_command(_simple(note_id, "toggle_favorite", "Favorite toggled"))


@app.command()
def duplicate(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """
    Copy a note.
    """
    run_command(_simple(note_id, "duplicate_note", "Duplicated"))


async def _simple(note_id: str, method: str, message: str) -> None:
    async with open_application() as memo_app:
        result = getattr(memo_app, method)(note_id)
        console.print(f"[green]✓ {message}[/green] {result.id}")


@app.command("empty-trash")
def empty_trash(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Permanently delete every note in the trash.
    """
    if not yes:
        typer.confirm("Empty the trash?", abort=True)
    run_command(_empty_trash())


async def _empty_trash() -> None:
    async with open_application() as memo_app:
        removed = memo_app.empty_trash()
        console.print(f"[green]✓ Removed {len(removed)} note(s)[/green]")


@app.command()
def remind(
    note_id: str = typer.Argument(..., help="Note ID"),
    when: Optional[str] = typer.Argument(None, help="Reminder time, ISO format"),
    clear: bool = typer.Option(False, "--clear", help="Remove the reminder"),
) -> None:
    """
    Set or clear a note's reminder.

    Examples:
        cli.py notes remind memo-123 2024-05-01T09:30
        cli.py notes remind memo-123 --clear
    """
    if when is None and not clear:
        console.print("[red]Error: give a time or --clear[/red]")
        raise typer.Exit(1)
    run_command(_remind(note_id, None if clear else when))


async def _remind(note_id: str, when: str | None) -> None:
    moment = _parse_when(when) if when is not None else None
    async with open_application() as memo_app:
        memo_app.set_reminder(note_id, moment)
        if moment is None:
            console.print(f"[green]✓ Reminder cleared[/green] {note_id}")
        else:
            console.print(f"[green]✓ Reminder set[/green] {note_id} at {moment.isoformat()}")


@app.command()
def lock(
    note_id: str = typer.Argument(..., help="Note ID"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
) -> None:
    """
    Lock a note behind a password.
    """
    run_command(_lock(note_id, password, locking=True))


@app.command()
def unlock(
    note_id: str = typer.Argument(..., help="Note ID"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """
    Remove a note's password lock.
    """
    run_command(_lock(note_id, password, locking=False))


async def _lock(note_id: str, password: str, locking: bool) -> None:
    async with open_application() as memo_app:
        if locking:
            memo_app.lock_note(note_id, password)
            console.print(f"[green]✓ Locked[/green] {note_id}")
        else:
            memo_app.unlock_note(note_id, password)
            console.print(f"[green]✓ Unlocked[/green] {note_id}")


@app.command()
def share(
    note_id: str = typer.Argument(..., help="Note ID"),
    mode: ShareMode = typer.Option(ShareMode.LINK, "--mode", "-m", help="private, link or email"),
    to: Optional[str] = typer.Option(None, "--to", help="Recipient email (email mode)"),
) -> None:
    """
    Share a note by link or email, or make it private again.

    Examples:
        cli.py notes share memo-123
        cli.py notes share memo-123 --mode email --to friend@example.com
    """
    run_command(_share(note_id, mode, to))


async def _share(note_id: str, mode: ShareMode, to: str | None) -> None:
    async with open_application() as memo_app:
        note = memo_app.share_note(note_id, mode, recipient=to)
        if mode == ShareMode.LINK:
            console.print(f"[green]✓ Share link:[/green] {note.share_link}")
        elif mode == ShareMode.EMAIL:
            console.print(f"[green]✓ Shared with[/green] {', '.join(note.shared_with)}")
        else:
            console.print(f"[green]✓ Sharing removed[/green] {note_id}")


@app.command()
def attach(
    note_id: str = typer.Argument(..., help="Note ID"),
    filename: str = typer.Argument(..., help="Attachment file name"),
    url: str = typer.Option(..., "--url", help="Where the uploaded content lives"),
    mime_type: str = typer.Option("application/octet-stream", "--type", help="MIME type"),
    size: int = typer.Option(0, "--size", help="Size in bytes"),
) -> None:
    """
    Attach already-uploaded content to a note.
    """
    run_command(_attach(note_id, filename, url, mime_type, size))


async def _attach(note_id: str, filename: str, url: str, mime_type: str, size: int) -> None:
    async with open_application() as memo_app:
        attachment = memo_app.add_attachment(note_id, filename, mime_type, size, url)
        console.print(f"[green]✓ Attached[/green] {attachment.id}")


@app.command()
def detach(
    note_id: str = typer.Argument(..., help="Note ID"),
    attachment_id: str = typer.Argument(..., help="Attachment ID"),
) -> None:
    """
    Remove an attachment from a note.
    """
    run_command(_detach(note_id, attachment_id))


async def _detach(note_id: str, attachment_id: str) -> None:
    async with open_application() as memo_app:
        memo_app.remove_attachment(note_id, attachment_id)
        console.print(f"[green]✓ Detached[/green] {attachment_id}")
