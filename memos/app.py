"""
Memo Application.

Explicitly constructed service container that wires the document store,
snapshot persistence, sync coordinator, reminder scanner and timers
together, and exposes the operations a UI calls.

Every mutating operation follows the same path:

    store mutation → coordinator.notify_mutation(op) → snapshot saved

so the saved snapshot always carries the operation that was just queued.
Storage failures never undo the in-memory change: they are reported through
the notification dispatcher and the next successful save catches up.

Usage:
    app = create_application()
    app.start()
    note = app.create_note()
    app.update_note(note.id, NotePatch(title="Groceries"))
    await app.set_online(True)
    await app.stop()
"""

from datetime import datetime, timedelta
from typing import Any

from pydantic.alias_generators import to_camel

from memos.core.config import get_app_config, get_settings, get_snapshot_path
from memos.core.exceptions import StorageError
from memos.core.logging import get_logger
from memos.core.resilience import create_circuit_breaker
from memos.core.timers import Clock, SystemClock, TimerService
from memos.persistence.snapshot_store import SnapshotStore
from memos.schemas.attachment import Attachment
from memos.schemas.note import Folder, FolderCounts, Note, NotePatch, ShareMode
from memos.schemas.sync import SyncOperation, SyncOperationType, SyncReport, SyncStatus
from memos.schemas.tag import Tag
from memos.services.document_store import AttachmentReleaser, DocumentStore
from memos.services.notifications import AlertType, LoggingDispatcher, NotificationDispatcher
from memos.services.reminders import ReminderScanner
from memos.services.session import LocalSession
from memos.services.sync_coordinator import SyncCoordinator
from memos.sync.queue import SyncQueue
from memos.sync.remote import HttpRemoteReplica, RemoteReplica
from memos.tasks.scheduled import register_scheduled_tasks

logger = get_logger(__name__)


class MemoApplication:
    """
    Application facade.

    Construct with collaborators, call ``start()`` to load the snapshot and
    register periodic tasks, and ``stop()`` to flush and tear down.
    """

    def __init__(
        self,
        persistence: SnapshotStore,
        session: LocalSession,
        remote: RemoteReplica | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        timers: TimerService | None = None,
        share_base_url: str = "",
        reminder_interval: timedelta = timedelta(minutes=1),
        sync_interval: timedelta = timedelta(minutes=5),
        release_attachment: AttachmentReleaser | None = None,
        online: bool = False,
    ) -> None:
        self.clock = clock or SystemClock()
        self.session = session
        self.persistence = persistence
        self.dispatcher = dispatcher or LoggingDispatcher()
        self.timers = timers or TimerService(self.clock)
        self.store = DocumentStore(clock=self.clock, release_attachment=release_attachment)
        self.queue = SyncQueue()
        self.coordinator = SyncCoordinator(
            self.queue,
            remote,
            session,
            online=online,
            on_report=self._on_sync_report,
        )
        self.scanner = ReminderScanner(self.store, clock=self.clock)
        self._remote = remote
        self._share_base_url = share_base_url
        self._intervals = {
            "reminder_scan": reminder_interval,
            "sync_drain": sync_interval,
        }
        self.durable = True
        self._started = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Load persisted state and register periodic tasks."""
        if self._started:
            return
        snapshot = self.persistence.load()
        self.store.load_snapshot(snapshot)
        self.queue.restore(snapshot.sync_queue)
        if self.persistence.last_warning is not None:
            self.dispatcher.status(self.persistence.last_warning.message, AlertType.ERROR)
        register_scheduled_tasks(self.timers, self, self._intervals)
        self._started = True
        logger.info(
            "Application started",
            source="internal",
            extra={
                "notes": len(self.store.notes),
                "tags": len(self.store.tags),
                "queued": len(self.queue),
            },
        )

    async def stop(self) -> None:
        """Stop timers, let a background drain finish, flush the snapshot."""
        if not self._started:
            return
        self.timers.stop()
        for name in list(self.timers.tasks):
            self.timers.cancel(name)
        await self.coordinator.wait_idle()
        self.save()
        if isinstance(self._remote, HttpRemoteReplica):
            await self._remote.aclose()
        self._started = False
        logger.info("Application stopped", source="internal")

    async def run(self) -> None:
        """Run periodic tasks in real time until ``stop()``."""
        await self.timers.run_forever()

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self) -> bool:
        """
        Write the current state, including the sync queue.

        Returns:
            True if the snapshot is durable, False if storage rejected it
        """
        snapshot = self.store.snapshot()
        snapshot.sync_queue = self.queue.pending()
        try:
            self.persistence.save(snapshot)
        except StorageError as e:
            self.durable = False
            self.dispatcher.status(
                f"{e.message}. Changes are kept in memory only.",
                AlertType.ERROR,
            )
            return False
        self.durable = True
        return True

    def _commit(self, *ops: SyncOperation) -> None:
        for op in ops:
            self.coordinator.notify_mutation(op)
        self.save()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_note(self, note_id: str) -> Note:
        return self.store.get_note(note_id)

    def list_filtered(self, folder: Folder | str = Folder.ALL, query: str = "") -> list[Note]:
        return self.store.list_filtered(folder, query)

    def counts(self) -> FolderCounts:
        return self.store.counts()

    def export_text(self, note_id: str) -> str:
        return self.store.export_text(note_id)

    # =========================================================================
    # Notes
    # =========================================================================

    def create_note(self, title: str = "", content: str = "") -> Note:
        note = self.store.create_note(title=title, content=content)
        self._commit(_op(SyncOperationType.CREATE_NOTE, note.to_wire()))
        return note

    def update_note(self, note_id: str, patch: NotePatch) -> Note:
        changed = patch.model_dump(exclude_unset=True)
        note = self.store.update_note(note_id, patch)
        if changed:
            fields = set(changed)
            if "reminder" in fields:
                fields.add("reminder_notified")
            self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, fields)))
        return note

    def soft_delete(self, note_id: str) -> Note:
        note = self.store.soft_delete(note_id)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"is_deleted"})))
        return note

    def restore(self, note_id: str) -> Note:
        note = self.store.restore(note_id)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"is_deleted"})))
        return note

    def permanently_delete(self, note_id: str) -> Note:
        note = self.store.permanently_delete(note_id)
        self._commit(_op(SyncOperationType.DELETE_NOTE, {"id": note_id}))
        return note

    def empty_trash(self) -> list[str]:
        removed = self.store.empty_trash()
        if removed:
            self._commit(_op(SyncOperationType.BATCH_DELETE, {"memoIds": removed}))
        return removed

    def duplicate_note(self, note_id: str) -> Note:
        copy = self.store.duplicate_note(note_id)
        self._commit(_op(SyncOperationType.CREATE_NOTE, copy.to_wire()))
        return copy

    def toggle_favorite(self, note_id: str) -> Note:
        note = self.store.toggle_favorite(note_id)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"is_favorite"})))
        return note

    def set_reminder(self, note_id: str, when: datetime | None) -> Note:
        note = self.store.set_reminder(note_id, when)
        self._commit(_op(
            SyncOperationType.UPDATE_NOTE,
            _note_fields(note, {"reminder", "reminder_notified"}),
        ))
        return note

    def lock_note(self, note_id: str, password: str) -> Note:
        note = self.store.lock_note(note_id, password)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"is_locked", "password"})))
        return note

    def unlock_note(self, note_id: str, password: str) -> Note:
        note = self.store.unlock_note(note_id, password)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"is_locked", "password"})))
        return note

    def share_note(self, note_id: str, mode: ShareMode | str, recipient: str | None = None) -> Note:
        note = self.store.share_note(note_id, mode, recipient=recipient, link_base=self._share_base_url)
        ops = [_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"shared_with", "share_link"}))]
        if ShareMode(mode) == ShareMode.EMAIL:
            ops.append(_op(SyncOperationType.SHARE_NOTE, {
                "memoId": note.id,
                "email": note.shared_with[0],
                "sharedAt": note.updated_at.isoformat(),
            }))
        self._commit(*ops)
        return note

    # =========================================================================
    # Attachments
    # =========================================================================

    def add_attachment(
        self,
        note_id: str,
        filename: str,
        mime_type: str,
        size: int,
        url: str,
    ) -> Attachment:
        attachment = self.store.add_attachment(note_id, filename, mime_type, size, url)
        note = self.store.get_note(note_id)
        self._commit(_op(SyncOperationType.UPLOAD_ATTACHMENT, {
            "memoId": note_id,
            "attachment": attachment.to_wire(),
            "updatedAt": note.updated_at.isoformat(),
        }))
        return attachment

    def remove_attachment(self, note_id: str, attachment_id: str) -> None:
        self.store.remove_attachment(note_id, attachment_id)
        note = self.store.get_note(note_id)
        self._commit(_op(SyncOperationType.DELETE_ATTACHMENT, {
            "memoId": note_id,
            "attachmentId": attachment_id,
            "updatedAt": note.updated_at.isoformat(),
        }))

    # =========================================================================
    # Tags
    # =========================================================================

    def create_tag(self, name: str) -> Tag:
        tag = self.store.create_tag(name)
        self._commit(_op(SyncOperationType.CREATE_TAG, tag.to_wire()))
        return tag

    def rename_tag(self, tag_id: str, name: str) -> Tag:
        tag = self.store.rename_tag(tag_id, name)
        self._commit(_op(SyncOperationType.UPDATE_TAG, tag.to_wire()))
        return tag

    def add_tag_to_note(self, note_id: str, tag_id: str) -> Note:
        before = list(self.store.get_note(note_id).tags)
        note = self.store.add_tag_to_note(note_id, tag_id)
        if note.tags != before:
            self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"tags"})))
        return note

    def remove_tag_from_note(self, note_id: str, tag_id: str) -> Note:
        note = self.store.remove_tag_from_note(note_id, tag_id)
        self._commit(_op(SyncOperationType.UPDATE_NOTE, _note_fields(note, {"tags"})))
        return note

    # =========================================================================
    # Reminders
    # =========================================================================

    def scan_reminders(self, now: datetime | None = None) -> list[Note]:
        """
        Deliver due reminders through the dispatcher.

        The delivered flag is local delivery state and is saved but not synced.
        """
        due = self.scanner.scan(now)
        for note in due:
            self.dispatcher.reminder(note)
        if due:
            self.save()
        return due

    # =========================================================================
    # Sync and session
    # =========================================================================

    async def set_online(self, online: bool) -> SyncReport | None:
        return await self.coordinator.set_online(online)

    async def sync_now(self) -> SyncReport:
        report = await self.coordinator.request_sync()
        if report.status == SyncStatus.SUPPRESSED:
            self.dispatcher.status("Cloud sync is not available in guest mode", AlertType.INFO)
        elif report.status == SyncStatus.OFFLINE:
            self.dispatcher.status("Offline: changes will sync when you reconnect", AlertType.INFO)
        return report

    async def on_foreground(self) -> SyncReport:
        """App came back to the foreground: catch up on reminders, then sync."""
        self.scan_reminders()
        return await self.coordinator.on_foreground()

    def sign_out(self) -> None:
        """
        End the session. A guest's data exists only locally and is wiped.
        """
        if self.session.sign_out():
            self.store.clear()
            self.queue.restore([])
            try:
                self.persistence.clear()
            except StorageError as e:
                self.dispatcher.status(e.message, AlertType.ERROR)
                return
            logger.info("Guest data cleared", source="internal")

    def _on_sync_report(self, report: SyncReport) -> None:
        if report.applied or report.status == SyncStatus.FAILED:
            self.save()
        if report.status == SyncStatus.FAILED:
            self.dispatcher.status(
                f"Sync failed, will retry later ({report.remaining} pending)",
                AlertType.WARNING,
            )


def _op(op_type: SyncOperationType, payload: dict[str, Any]) -> SyncOperation:
    return SyncOperation(type=op_type, payload=payload)


def _note_fields(note: Note, fields: set[str]) -> dict[str, Any]:
    """Partial wire payload: id, the given fields, and updatedAt."""
    wire = note.to_wire()
    keys = ["id", *sorted(to_camel(name) for name in fields), "updatedAt"]
    return {key: wire[key] for key in keys}


def create_application(
    dispatcher: NotificationDispatcher | None = None,
    session: LocalSession | None = None,
    online: bool = False,
) -> MemoApplication:
    """
    Build an application from config/settings/*.yaml and config/.env.

    Cloud sync is wired only when sync.yaml enables it.
    """
    config = get_app_config()
    session = session or LocalSession()
    clock = SystemClock()

    persistence = SnapshotStore(
        get_snapshot_path(),
        max_bytes=config.storage.max_bytes,
        quarantine_corrupt=config.storage.quarantine_corrupt,
        clock=clock,
    )

    remote = None
    if config.sync.enabled:
        remote = HttpRemoteReplica(
            config.sync.endpoint,
            session,
            token=get_settings().sync_api_token,
            timeout=config.sync.timeout_seconds,
            breaker=create_circuit_breaker(
                "remote_replica",
                fail_max=config.sync.circuit_breaker.fail_max,
                timeout_duration=config.sync.circuit_breaker.timeout_duration,
            ),
        )

    return MemoApplication(
        persistence=persistence,
        session=session,
        remote=remote,
        dispatcher=dispatcher,
        clock=clock,
        share_base_url=config.application.share_base_url,
        reminder_interval=timedelta(seconds=config.reminders.scan_interval_seconds),
        sync_interval=timedelta(seconds=config.sync.interval_seconds),
        online=online,
    )


__all__ = ["MemoApplication", "create_application"]
