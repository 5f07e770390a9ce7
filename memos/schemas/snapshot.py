"""
Snapshot Schema.

The complete serializable state of the document store at one point in time.
"""

from pydantic import Field

from memos.schemas.attachment import Attachment
from memos.schemas.base import CamelModel, UtcDateTime
from memos.schemas.note import Note
from memos.schemas.sync import SyncOperation
from memos.schemas.tag import Tag


class Snapshot(CamelModel):
    notes: list[Note] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    sync_queue: list[SyncOperation] = Field(default_factory=list)
    last_saved: UtcDateTime | None = None

    def is_empty(self) -> bool:
        return not (self.notes or self.tags or self.attachments or self.sync_queue)
