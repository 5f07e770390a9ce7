"""
Sync Schemas.

Queued mutations bound for the remote replica, and the results of
draining them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from memos.core.utils import generate_id, utc_now
from memos.schemas.base import CamelModel, UtcDateTime


class SyncOperationType(str, Enum):
    CREATE_NOTE = "CREATE_MEMO"
    UPDATE_NOTE = "UPDATE_MEMO"
    DELETE_NOTE = "DELETE_MEMO"
    CREATE_TAG = "CREATE_TAG"
    UPDATE_TAG = "UPDATE_TAG"
    UPLOAD_ATTACHMENT = "UPLOAD_ATTACHMENT"
    DELETE_ATTACHMENT = "DELETE_ATTACHMENT"
    SHARE_NOTE = "SHARE_MEMO"
    BATCH_DELETE = "BATCH_DELETE_MEMOS"


NOTE_WRITE_TYPES = frozenset({
    SyncOperationType.CREATE_NOTE,
    SyncOperationType.UPDATE_NOTE,
    SyncOperationType.SHARE_NOTE,
    SyncOperationType.UPLOAD_ATTACHMENT,
    SyncOperationType.DELETE_ATTACHMENT,
})
"""Operations made pointless by a later delete of the same note."""


class SyncOperation(CamelModel):
    """
    One locally committed mutation awaiting remote application.

    ``payload`` carries the partial entity fields needed to replay the
    mutation, in the same camelCase shape as the snapshot.
    """

    id: str = Field(default_factory=lambda: generate_id("op"))
    type: SyncOperationType
    payload: dict[str, Any] = Field(default_factory=dict)
    enqueued_at: UtcDateTime = Field(default_factory=utc_now)

    def note_ids(self) -> set[str]:
        """Ids of the notes this operation touches."""
        payload = self.payload
        if self.type == SyncOperationType.BATCH_DELETE:
            return set(payload.get("memoIds", []))
        if self.type in (
            SyncOperationType.CREATE_NOTE,
            SyncOperationType.UPDATE_NOTE,
            SyncOperationType.DELETE_NOTE,
        ):
            return {payload["id"]} if payload.get("id") else set()
        if payload.get("memoId"):
            return {payload["memoId"]}
        return set()


@dataclass
class DrainResult:
    """Outcome of one pass over the queue."""

    applied: list[SyncOperation] = field(default_factory=list)
    failed: SyncOperation | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.failed is None


class SyncStatus(str, Enum):
    SYNCED = "synced"
    FAILED = "failed"
    COALESCED = "coalesced"
    OFFLINE = "offline"
    SUPPRESSED = "suppressed"


@dataclass
class SyncReport:
    """What the coordinator did in response to a drain trigger."""

    status: SyncStatus
    reason: str
    applied: int = 0
    remaining: int = 0
    error: Exception | None = None
    finished_at: datetime = field(default_factory=utc_now)
