"""
Scheduled Background Tasks.

Periodic jobs registered with the TimerService when the application starts.

    reminder_scan  - every reminders.scan_interval_seconds (default 60 s)
    sync_drain     - every sync.interval_seconds while online (default 300 s)

Both are plain async functions taking the application, so tests can call
them directly without a timer.

Usage:
    from memos.tasks.scheduled import register_scheduled_tasks
    register_scheduled_tasks(timers, app, {"reminder_scan": timedelta(minutes=1), ...})
"""

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from memos.core.logging import get_logger
from memos.core.timers import PeriodicTask, TimerService
from memos.core.utils import utc_now

if TYPE_CHECKING:
    from memos.app import MemoApplication

logger = get_logger(__name__)


# =============================================================================
# Scheduled Task Functions
# =============================================================================


async def reminder_scan(app: "MemoApplication") -> dict[str, Any]:
    """
    Deliver reminders that have come due.

    Returns:
        Scan statistics
    """
    due = app.scan_reminders()
    result = {
        "status": "completed",
        "due": [note.id for note in due],
        "scanned_at": utc_now().isoformat(),
    }
    if due:
        logger.info("Reminder scan delivered notifications", source="tasks", extra=result)
    return result


async def sync_drain(app: "MemoApplication") -> dict[str, Any]:
    """
    Periodic drain of the sync queue.

    Returns:
        Drain status
    """
    report = await app.coordinator.on_timer()
    result = {
        "status": report.status.value,
        "applied": report.applied,
        "remaining": report.remaining,
        "drained_at": report.finished_at.isoformat(),
    }
    logger.debug("Periodic sync finished", source="tasks", extra=result)
    return result


# =============================================================================
# Schedule Configuration
# =============================================================================

SCHEDULED_TASKS = {
    "reminder_scan": {
        "function": reminder_scan,
        "default_interval": timedelta(minutes=1),
        "run_immediately": True,
        "description": "Deliver due reminders once per minute",
    },
    "sync_drain": {
        "function": sync_drain,
        "default_interval": timedelta(minutes=5),
        "run_immediately": False,
        "description": "Push queued changes to the cloud copy",
    },
}


def register_scheduled_tasks(
    timers: TimerService,
    app: "MemoApplication",
    intervals: dict[str, timedelta] | None = None,
) -> dict[str, PeriodicTask]:
    """
    Register every scheduled task with the timer service.

    Args:
        timers: Timer service to register with
        app: Application passed to each task function
        intervals: Per-task interval overrides, keyed by task name

    Returns:
        Dict mapping task names to registered tasks
    """
    intervals = intervals or {}
    registered = {}

    for task_name, config in SCHEDULED_TASKS.items():
        function = config["function"]
        registered[task_name] = timers.schedule(
            task_name,
            intervals.get(task_name, config["default_interval"]),
            lambda function=function: function(app),
            run_immediately=config["run_immediately"],
        )

    logger.info(
        "Scheduled tasks registered",
        source="tasks",
        extra={"tasks": list(registered)},
    )
    return registered
