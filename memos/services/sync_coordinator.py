"""
Sync Coordinator.

Decides when the sync queue is drained against the remote replica.

States:
    OFFLINE → ONLINE   connectivity returned; drain immediately
    ONLINE             drain on manual request, periodic timer, app foreground,
                       and opportunistically after each local mutation

Gates checked before every drain, in order:
    1. Guest session or no remote configured → SUPPRESSED (never syncs)
    2. Offline                               → OFFLINE
    3. A drain already in flight             → COALESCED (no-op)

Local state is authoritative. A failed drain is reported as a FAILED
SyncReport carrying a DrainFailure; nothing local is rolled back, the queue
keeps the failed operation at its head, and the next trigger tries again.

Supersede policy: enqueuing a note delete cancels any still-queued (not
in-flight) create/update/share/attachment operations for that note. The
delete itself is always queued.
"""

import asyncio
from collections.abc import Callable
from enum import Enum

from memos.core.exceptions import DrainFailure
from memos.schemas.sync import (
    NOTE_WRITE_TYPES,
    SyncOperation,
    SyncOperationType,
    SyncReport,
    SyncStatus,
)
from memos.services.base import BaseService
from memos.services.session import SessionProvider
from memos.sync.queue import SyncQueue
from memos.sync.remote import RemoteReplica

_DELETE_TYPES = frozenset({SyncOperationType.DELETE_NOTE, SyncOperationType.BATCH_DELETE})


class ConnectivityState(str, Enum):
    OFFLINE = "offline"
    ONLINE = "online"


class SyncCoordinator(BaseService):
    """
    Orchestrates queue draining against network and session state.

    Args:
        queue: Queue of pending operations
        remote: Remote replica, or None when cloud sync is not configured
        session: Identity provider consulted before every drain
        online: Initial connectivity
        on_report: Called with every SyncReport produced by an actual drain attempt
    """

    log_source = "sync"

    def __init__(
        self,
        queue: SyncQueue,
        remote: RemoteReplica | None,
        session: SessionProvider,
        online: bool = False,
        on_report: Callable[[SyncReport], None] | None = None,
    ) -> None:
        super().__init__()
        self.queue = queue
        self._remote = remote
        self._session = session
        self._state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        self._on_report = on_report
        self._draining = False
        self._background: asyncio.Task | None = None
        self.last_report: SyncReport | None = None

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state == ConnectivityState.ONLINE

    @property
    def is_draining(self) -> bool:
        return self._draining

    def sync_enabled(self) -> bool:
        return self._remote is not None and not self._session.is_guest()

    # =========================================================================
    # Mutation entry point
    # =========================================================================

    def notify_mutation(self, op: SyncOperation) -> bool:
        """
        Record a locally committed mutation for replay on the remote.

        Returns:
            True if the operation was queued; False when sync is disabled
            for this session
        """
        if not self.sync_enabled():
            self._log_debug("Sync disabled, operation not queued", type=op.type.value)
            return False

        if op.type in _DELETE_TYPES:
            self._cancel_superseded(op)

        self.queue.enqueue(op)
        if self.is_online:
            self._schedule_drain("mutation")
        return True

    def _cancel_superseded(self, delete_op: SyncOperation) -> None:
        deleted = delete_op.note_ids()
        if not deleted:
            return
        cancelled = self.queue.discard(
            lambda queued: queued.type in NOTE_WRITE_TYPES and bool(queued.note_ids() & deleted)
        )
        if cancelled:
            self._log_debug(
                "Queued writes superseded by delete",
                cancelled=[op.id for op in cancelled],
                note_ids=sorted(deleted),
            )

    def _schedule_drain(self, reason: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): the next timer or manual sync drains.
            return
        if self._draining or (self._background is not None and not self._background.done()):
            return
        self._background = loop.create_task(self.drain(reason))

    async def wait_idle(self) -> None:
        """Wait for an opportunistic background drain to finish."""
        if self._background is not None:
            await asyncio.shield(self._background)

    # =========================================================================
    # Triggers
    # =========================================================================

    async def set_online(self, online: bool) -> SyncReport | None:
        """
        Apply a connectivity signal.

        Returns:
            The drain report when this call brought the app online, else None
        """
        previous = self._state
        self._state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        if previous != self._state:
            self._log_operation("Connectivity changed", state=self._state.value)
        if online and previous == ConnectivityState.OFFLINE:
            return await self.drain("reconnect")
        return None

    async def request_sync(self) -> SyncReport:
        """Manual sync."""
        return await self.drain("manual")

    async def on_timer(self) -> SyncReport:
        return await self.drain("timer")

    async def on_foreground(self) -> SyncReport:
        return await self.drain("foreground")

    # =========================================================================
    # Drain
    # =========================================================================

    async def drain(self, reason: str) -> SyncReport:
        """
        Drain the queue once, subject to the gates described in the module docstring.

        Never raises for remote failures; inspect the returned report.
        """
        if not self.sync_enabled():
            return SyncReport(status=SyncStatus.SUPPRESSED, reason=reason, remaining=len(self.queue))
        if not self.is_online:
            return SyncReport(status=SyncStatus.OFFLINE, reason=reason, remaining=len(self.queue))
        if self._draining:
            self._log_debug("Drain already in flight, request coalesced", reason=reason)
            return SyncReport(status=SyncStatus.COALESCED, reason=reason, remaining=len(self.queue))

        self._draining = True
        try:
            result = await self.queue.drain(self._remote.apply)
        finally:
            self._draining = False

        if result.ok:
            report = SyncReport(
                status=SyncStatus.SYNCED,
                reason=reason,
                applied=len(result.applied),
                remaining=len(self.queue),
            )
            if result.applied:
                self._log_operation("Sync drained", reason=reason, applied=report.applied)
        else:
            failure = DrainFailure(
                f"Sync stopped at {result.failed.type.value}: {result.error or 'rejected'}",
                operation_id=result.failed.id,
                operation_type=result.failed.type.value,
            )
            failure.__cause__ = result.error
            report = SyncReport(
                status=SyncStatus.FAILED,
                reason=reason,
                applied=len(result.applied),
                remaining=len(self.queue),
                error=failure,
            )

        self.last_report = report
        if self._on_report is not None:
            self._on_report(report)
        return report
