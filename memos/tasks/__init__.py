"""
Background Tasks Package.

Periodic jobs (reminder scans, sync drains) run by the TimerService.

Usage:
    from memos.tasks import register_scheduled_tasks
    from memos.tasks.scheduled import reminder_scan

    # Call directly as async functions
    result = await reminder_scan(app)
"""

from memos.tasks.scheduled import SCHEDULED_TASKS, register_scheduled_tasks

__all__ = ["SCHEDULED_TASKS", "register_scheduled_tasks"]
