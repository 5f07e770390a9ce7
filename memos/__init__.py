"""
Memos.

- core/: Configuration, logging, exceptions, timers, resilience
- schemas/: Notes, tags, attachments, sync operations, snapshots (pydantic)
- services/: Document store, sync coordinator, reminders, session, notifications
- persistence/: Snapshot file storage
- sync/: Sync queue and remote replica client
- tasks/: Periodic reminder scan and sync drain
- cli/: Command-line client (Typer + Rich)
- app.py: MemoApplication, the explicitly wired service container
"""
