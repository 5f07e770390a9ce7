"""
Notification Dispatch.

Sink for due reminders and transient status messages. The core only
produces what to say; how it reaches the user (desktop notification,
toast, terminal line) belongs to the dispatcher.

Usage:
    dispatcher = LoggingDispatcher()
    dispatcher.reminder(note)
    dispatcher.status("Sync failed, will retry", AlertType.WARNING)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from memos.core.logging import get_logger, log_with_source
from memos.core.utils import utc_now
from memos.schemas.note import Note

logger = get_logger(__name__)

UNTITLED = "Untitled memo"


class AlertType(str, Enum):
    """Types of alerts for categorization and formatting."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationDispatcher(Protocol):
    def reminder(self, note: Note) -> None: ...

    def status(self, message: str, level: AlertType = AlertType.INFO) -> None: ...


@dataclass
class Notification:
    """A delivered notification, kept for inspection."""

    message: str
    level: AlertType
    note_id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


class LoggingDispatcher:
    """
    Dispatcher that writes to the log and remembers what it sent.

    ``history`` is bounded so a long-running process does not grow without limit.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._history_size = history_size
        self.history: list[Notification] = []

    def reminder(self, note: Note) -> None:
        message = f"Reminder: {note.title or UNTITLED}"
        self._record(Notification(message=message, level=AlertType.WARNING, note_id=note.id))
        log_with_source(logger, "reminders", "info", message, note_id=note.id)

    def status(self, message: str, level: AlertType = AlertType.INFO) -> None:
        self._record(Notification(message=message, level=level))
        log_level = "warning" if level in (AlertType.WARNING, AlertType.ERROR) else "info"
        log_with_source(logger, "internal", log_level, message, alert_type=level.value)

    def _record(self, notification: Notification) -> None:
        self.history.append(notification)
        if len(self.history) > self._history_size:
            del self.history[: len(self.history) - self._history_size]
