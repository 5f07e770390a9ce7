from memos.schemas.attachment import Attachment
from memos.schemas.note import Folder, FolderCounts, Note, NotePatch, ShareMode
from memos.schemas.snapshot import Snapshot
from memos.schemas.sync import (
    DrainResult,
    SyncOperation,
    SyncOperationType,
    SyncReport,
    SyncStatus,
)
from memos.schemas.tag import TAG_PALETTE, Tag

__all__ = [
    "Attachment",
    "DrainResult",
    "Folder",
    "FolderCounts",
    "Note",
    "NotePatch",
    "ShareMode",
    "Snapshot",
    "SyncOperation",
    "SyncOperationType",
    "SyncReport",
    "SyncStatus",
    "TAG_PALETTE",
    "Tag",
]
