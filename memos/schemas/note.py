"""
Note Schemas.

The Note entity, the patch used to update it, and the folder views over it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from memos.schemas.base import CamelModel, UtcDateTime


class Folder(str, Enum):
    """Predefined view filters over notes."""

    ALL = "all"
    FAVORITES = "favorites"
    REMINDERS = "reminders"
    TRASH = "trash"


class ShareMode(str, Enum):
    PRIVATE = "private"
    LINK = "link"
    EMAIL = "email"


class Note(CamelModel):
    """
    A memo.

    Only DocumentStore mutates notes; everything else reads them.
    ``tags`` has set semantics (no duplicates, order irrelevant) but is kept
    as a list so the snapshot stays plain JSON.
    """

    id: str
    title: str = ""
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    created_at: UtcDateTime
    updated_at: UtcDateTime
    is_favorite: bool = False
    is_deleted: bool = False
    is_locked: bool = False
    password: str | None = None
    reminder: UtcDateTime | None = None
    reminder_notified: bool = False
    shared_with: list[str] = Field(default_factory=list)
    share_link: str | None = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title={self.title!r})>"


class NotePatch(BaseModel):
    """
    Fields a caller may change through ``DocumentStore.update_note``.

    Only fields explicitly set are applied. ``updated_at``, ``is_deleted``
    and ``reminder_notified`` are deliberately absent: the store owns them.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    is_favorite: bool | None = None
    reminder: UtcDateTime | None = None
    shared_with: list[str] | None = None
    share_link: str | None = None


class FolderCounts(BaseModel):
    """Number of notes visible in each folder."""

    all: int = 0
    favorites: int = 0
    reminders: int = 0
    trash: int = 0
