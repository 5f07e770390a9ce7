"""
Tag Commands.

Tags are addressed by id or by name (case-insensitive).
"""

import typer
from rich.table import Table

from memos.app import MemoApplication
from memos.cli.client import console, open_application, run_command
from memos.core.exceptions import NotFoundError
from memos.schemas.tag import Tag

app = typer.Typer(help="Tag commands")


def _find_tag(memo_app: MemoApplication, ref: str) -> Tag:
    for tag in memo_app.store.tags:
        if tag.id == ref or tag.matches(ref):
            return tag
    raise NotFoundError(f"Tag not found: {ref}")


@app.command()
def create(name: str = typer.Argument(..., help="Tag name")) -> None:
    """
    Create a tag.
    """
    run_command(_create(name))


async def _create(name: str) -> None:
    async with open_application() as memo_app:
        tag = memo_app.create_tag(name)
        console.print(f"[green]✓ Created tag[/green] [{tag.color}]{tag.name}[/{tag.color}] {tag.id}")


@app.command()
def rename(
    tag: str = typer.Argument(..., help="Tag id or name"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """
    Rename a tag.
    """
    run_command(_rename(tag, name))


async def _rename(ref: str, name: str) -> None:
    async with open_application() as memo_app:
        tag = memo_app.rename_tag(_find_tag(memo_app, ref).id, name)
        console.print(f"[green]✓ Renamed[/green] {tag.id} → {tag.name}")


@app.command("list")
def list_tags() -> None:
    """
    List tags with the number of live notes carrying each.
    """
    run_command(_list())


async def _list() -> None:
    async with open_application() as memo_app:
        tags = memo_app.store.tags
        if not tags:
            console.print("[dim]No tags[/dim]")
            return
        table = Table(title="Tags", show_header=True)
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Notes", justify="right")
        for tag in tags:
            table.add_row(
                tag.id,
                f"[{tag.color}]{tag.name}[/{tag.color}]",
                str(memo_app.store.tag_count(tag.id)),
            )
        console.print(table)


@app.command()
def add(
    note_id: str = typer.Argument(..., help="Note ID"),
    tag: str = typer.Argument(..., help="Tag id or name"),
) -> None:
    """
    Tag a note.
    """
    run_command(_assign(note_id, tag, adding=True))


@app.command()
def remove(
    note_id: str = typer.Argument(..., help="Note ID"),
    tag: str = typer.Argument(..., help="Tag id or name"),
) -> None:
    """
    Remove a tag from a note.
    """
    run_command(_assign(note_id, tag, adding=False))


async def _assign(note_id: str, ref: str, adding: bool) -> None:
    async with open_application() as memo_app:
        tag = _find_tag(memo_app, ref)
        if adding:
            memo_app.add_tag_to_note(note_id, tag.id)
            console.print(f"[green]✓ Tagged[/green] {note_id} with {tag.name}")
        else:
            memo_app.remove_tag_from_note(note_id, tag.id)
            console.print(f"[green]✓ Untagged[/green] {tag.name} from {note_id}")
