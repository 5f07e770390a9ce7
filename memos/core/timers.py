"""
Timer Service.

Schedulable periodic tasks driven by an injectable clock. Replaces ad hoc
interval loops so reminder scans and sync drains can be paused, resumed
and advanced deterministically in tests.

A task that misses several intervals (process suspended, machine asleep)
runs once when next due, not once per missed interval.

Usage:
    from memos.core.timers import ManualClock, TimerService

    clock = ManualClock()
    timers = TimerService(clock)
    timers.schedule("reminder_scan", timedelta(minutes=1), scan_callback)

    clock.advance(timedelta(minutes=1))
    await timers.run_due()           # runs reminder_scan

    # Real time
    await timers.run_forever()       # until timers.stop()
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from memos.core.logging import get_logger
from memos.core.utils import utc_now

logger = get_logger(__name__)

TaskCallback = Callable[[], Awaitable[Any] | Any]


class Clock(Protocol):
    """Source of the current UTC time (timezone-naive)."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return utc_now()


class ManualClock:
    """A clock that only moves when told to. Used in tests and simulations."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, 9, 0, 0)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta | float) -> datetime:
        """Move the clock forward. Floats are seconds."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._now = self._now + delta
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when


@dataclass
class PeriodicTask:
    """A named callback run every ``interval``."""

    name: str
    interval: timedelta
    callback: TaskCallback
    next_run: datetime
    paused: bool = False
    runs: int = 0

    def is_due(self, now: datetime) -> bool:
        return not self.paused and self.next_run <= now


class TimerService:
    """
    Registry of periodic tasks.

    Tasks run sequentially inside ``run_due``; a failing task is logged and
    rescheduled so one broken callback never starves the others.
    """

    def __init__(self, clock: Clock | None = None, poll_seconds: float = 1.0) -> None:
        self.clock = clock or SystemClock()
        self._poll_seconds = poll_seconds
        self._tasks: dict[str, PeriodicTask] = {}
        self._stopping: asyncio.Event | None = None

    @property
    def tasks(self) -> dict[str, PeriodicTask]:
        return dict(self._tasks)

    def schedule(
        self,
        name: str,
        interval: timedelta,
        callback: TaskCallback,
        run_immediately: bool = False,
    ) -> PeriodicTask:
        """
        Register a periodic task.

        Args:
            name: Unique task name
            interval: Time between runs
            callback: Sync or async callable taking no arguments
            run_immediately: Make the first run due now instead of after one interval

        Raises:
            ValueError: If the name is already scheduled or the interval is not positive
        """
        if name in self._tasks:
            raise ValueError(f"Task already scheduled: {name}")
        if interval <= timedelta(0):
            raise ValueError("Interval must be positive")

        now = self.clock.now()
        task = PeriodicTask(
            name=name,
            interval=interval,
            callback=callback,
            next_run=now if run_immediately else now + interval,
        )
        self._tasks[name] = task
        logger.debug(
            "Task scheduled",
            extra={"task": name, "interval_seconds": interval.total_seconds()},
        )
        return task

    def cancel(self, name: str) -> None:
        self._tasks.pop(name, None)

    def pause(self, name: str) -> None:
        self._get(name).paused = True

    def resume(self, name: str) -> None:
        """Resume a paused task. A run missed while paused becomes due immediately."""
        self._get(name).paused = False

    def next_due(self) -> datetime | None:
        active = [t.next_run for t in self._tasks.values() if not t.paused]
        return min(active) if active else None

    async def run_due(self) -> list[str]:
        """Run every task that is due now. Returns the names of tasks that ran."""
        now = self.clock.now()
        ran: list[str] = []
        for task in list(self._tasks.values()):
            if not task.is_due(now):
                continue
            task.next_run = now + task.interval
            task.runs += 1
            ran.append(task.name)
            try:
                result = task.callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Scheduled task failed",
                    extra={"task": task.name, "error": str(e)},
                )
        return ran

    async def run_forever(self) -> None:
        """Poll for due tasks in real time until ``stop()`` is called."""
        self._stopping = asyncio.Event()
        logger.info("Timer service started", extra={"tasks": sorted(self._tasks)})
        while not self._stopping.is_set():
            await self.run_due()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_seconds)
            except TimeoutError:
                continue
        logger.info("Timer service stopped")

    def stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    def _get(self, name: str) -> PeriodicTask:
        try:
            return self._tasks[name]
        except KeyError:
            raise KeyError(f"No such task: {name}") from None
