"""
Reminder Scanner.

Finds notes whose reminder time has passed and marks them notified.

The match is time-based (``reminder <= now``), so a scan that runs late,
after the machine slept through several intervals, still picks up every
reminder that elapsed in between. The notified flag makes each delivery
at-most-once no matter how often or how irregularly scans run.
"""

from datetime import datetime

from memos.core.timers import Clock, SystemClock
from memos.core.utils import to_naive_utc
from memos.schemas.note import Note
from memos.services.base import BaseService
from memos.services.document_store import DocumentStore


def is_due(note: Note, now: datetime) -> bool:
    return (
        note.reminder is not None
        and note.reminder <= now
        and not note.reminder_notified
        and not note.is_deleted
    )


class ReminderScanner(BaseService):
    log_source = "reminders"

    def __init__(self, store: DocumentStore, clock: Clock | None = None) -> None:
        super().__init__()
        self._store = store
        self._clock = clock or SystemClock()

    def scan(self, now: datetime | None = None) -> list[Note]:
        """
        Mark and return every due, not yet notified, live note.

        Args:
            now: Scan time; defaults to the injected clock

        Returns:
            Newly due notes, earliest reminder first
        """
        now = to_naive_utc(now or self._clock.now())
        due = [note for note in self._store.notes if is_due(note, now)]
        due.sort(key=lambda note: note.reminder)

        for note in due:
            self._store.mark_reminder_notified(note.id)

        if due:
            self._log_operation("Reminders due", count=len(due), note_ids=[n.id for n in due])
        return due

    def upcoming(self, now: datetime | None = None) -> list[Note]:
        """Live notes with a reminder still in the future, soonest first."""
        now = to_naive_utc(now or self._clock.now())
        pending = [
            note for note in self._store.notes
            if note.reminder is not None and note.reminder > now and not note.is_deleted
        ]
        return sorted(pending, key=lambda note: note.reminder)
