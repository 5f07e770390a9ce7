"""
CLI Commands.

Organized by domain/feature area.
"""

from memos.cli.commands.notes import app as notes_app
from memos.cli.commands.reminders import app as reminders_app
from memos.cli.commands.session import app as session_app
from memos.cli.commands.sync import app as sync_app
from memos.cli.commands.tags import app as tags_app

__all__ = [
    "notes_app",
    "reminders_app",
    "session_app",
    "sync_app",
    "tags_app",
]
