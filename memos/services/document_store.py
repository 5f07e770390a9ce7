"""
Document Store.

Canonical in-memory collections of notes, tags and attachments. Every
mutation goes through this class so invariants are checked in one place:

- ``updated_at`` is assigned here and nowhere else, never moves backwards,
  and is never earlier than ``created_at``.
- Reassigning ``reminder`` clears ``reminder_notified``.
- Tag names are unique case-insensitively; notes only gain references to
  tags that exist. Dangling references left behind are filtered on read.
- Attachments are released once no note references them.

Usage:
    store = DocumentStore(clock=ManualClock())
    note = store.create_note()
    store.update_note(note.id, NotePatch(title="Groceries"))
    store.list_filtered(Folder.ALL, "groceries")
"""

from collections.abc import Callable, Iterable
from datetime import datetime

from memos.core.exceptions import (
    AuthenticationError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)
from memos.core.security import hash_password, verify_password
from memos.core.timers import Clock, SystemClock
from memos.core.utils import generate_id, is_valid_email, strip_html
from memos.schemas.attachment import Attachment
from memos.schemas.note import Folder, FolderCounts, Note, NotePatch, ShareMode
from memos.schemas.snapshot import Snapshot
from memos.schemas.tag import TAG_PALETTE, Tag
from memos.services.base import BaseService

AttachmentReleaser = Callable[[Attachment], None]

_LOCKED_FIELDS = frozenset({"title", "content"})
_MAX_PASSWORD_BYTES = 72


class DocumentStore(BaseService):
    """
    Service owning all notes, tags and attachments in memory.

    Notes are kept newest-first (new notes are inserted at the head).
    Returned Note objects are the live instances; callers must not mutate
    them directly.
    """

    log_source = "store"

    def __init__(
        self,
        clock: Clock | None = None,
        release_attachment: AttachmentReleaser | None = None,
        palette: tuple[str, ...] = TAG_PALETTE,
    ) -> None:
        super().__init__()
        self._clock = clock or SystemClock()
        self._release_attachment = release_attachment
        self._palette = palette
        self._notes: list[Note] = []
        self._tags: list[Tag] = []
        self._attachments: dict[str, Attachment] = {}

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def tags(self) -> tuple[Tag, ...]:
        return tuple(self._tags)

    @property
    def attachments(self) -> tuple[Attachment, ...]:
        return tuple(self._attachments.values())

    def get_note(self, note_id: str) -> Note:
        """
        Get a note by ID.

        Raises:
            NotFoundError: If note not found
        """
        for note in self._notes:
            if note.id == note_id:
                return note
        raise NotFoundError(f"Note not found: {note_id}")

    def get_tag(self, tag_id: str) -> Tag:
        for tag in self._tags:
            if tag.id == tag_id:
                return tag
        raise NotFoundError(f"Tag not found: {tag_id}")

    def get_attachment(self, attachment_id: str) -> Attachment:
        try:
            return self._attachments[attachment_id]
        except KeyError:
            raise NotFoundError(f"Attachment not found: {attachment_id}") from None

    def resolve_tags(self, note: Note) -> list[Tag]:
        """Tags referenced by a note, skipping ids that no longer exist."""
        by_id = {tag.id: tag for tag in self._tags}
        return [by_id[tag_id] for tag_id in note.tags if tag_id in by_id]

    def note_attachments(self, note_id: str) -> list[Attachment]:
        note = self.get_note(note_id)
        return [self._attachments[a] for a in note.attachments if a in self._attachments]

    def list_filtered(self, folder: Folder | str = Folder.ALL, query: str = "") -> list[Note]:
        """
        List the notes visible in a folder, optionally narrowed by a search.

        Args:
            folder: One of all, favorites, reminders, trash
            query: Case-insensitive substring matched against title, content
                and tag names. Blank means no filtering.

        Returns:
            Notes sorted by updated_at, newest first. Ties keep collection
            order (newest-created first).
        """
        folder = Folder(folder)
        needle = query.strip().casefold()
        tag_names = {tag.id: tag.name.casefold() for tag in self._tags}

        def visible(note: Note) -> bool:
            if folder == Folder.TRASH:
                return note.is_deleted
            if note.is_deleted:
                return False
            if folder == Folder.FAVORITES:
                return note.is_favorite
            if folder == Folder.REMINDERS:
                return note.reminder is not None
            return True

        def matches(note: Note) -> bool:
            if not needle:
                return True
            if needle in note.title.casefold() or needle in note.content.casefold():
                return True
            return any(
                needle in tag_names[tag_id]
                for tag_id in note.tags
                if tag_id in tag_names
            )

        selected = [note for note in self._notes if visible(note) and matches(note)]
        return sorted(selected, key=lambda note: note.updated_at, reverse=True)

    def counts(self) -> FolderCounts:
        live = [note for note in self._notes if not note.is_deleted]
        return FolderCounts(
            all=len(live),
            favorites=sum(1 for note in live if note.is_favorite),
            reminders=sum(1 for note in live if note.reminder is not None),
            trash=len(self._notes) - len(live),
        )

    def tag_count(self, tag_id: str) -> int:
        """Number of live notes carrying a tag."""
        return sum(1 for note in self._notes if not note.is_deleted and tag_id in note.tags)

    def export_text(self, note_id: str) -> str:
        """Plain-text rendering of a note: title, blank line, content without markup."""
        note = self.get_note(note_id)
        return f"{note.title}\n\n{strip_html(note.content)}"

    # =========================================================================
    # Notes
    # =========================================================================

    def create_note(self, title: str = "", content: str = "") -> Note:
        """Create an empty note at the head of the collection."""
        now = self._clock.now()
        note = Note(
            id=generate_id("memo"),
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
        )
        self._notes.insert(0, note)
        self._log_operation("Note created", note_id=note.id)
        return note

    def update_note(self, note_id: str, patch: NotePatch) -> Note:
        """
        Update an existing note.

        Args:
            note_id: Note ID to update
            patch: Update data (only fields explicitly set are applied)

        Returns:
            Updated note

        Raises:
            NotFoundError: If the note or a referenced tag does not exist
            ValidationError: If the note is locked or a recipient is invalid
        """
        note = self.get_note(note_id)
        update_data = patch.model_dump(exclude_unset=True)

        if not update_data:
            return note

        if note.is_locked and _LOCKED_FIELDS & update_data.keys():
            raise ValidationError(
                "Note is locked",
                details={"note_id": note_id},
            )
        if "title" in update_data and update_data["title"] is None:
            update_data["title"] = ""
        if "content" in update_data and update_data["content"] is None:
            update_data["content"] = ""
        if "is_favorite" in update_data and update_data["is_favorite"] is None:
            del update_data["is_favorite"]
        if update_data.get("tags") is not None:
            self._check_tags_exist(update_data["tags"])
        elif "tags" in update_data:
            update_data["tags"] = []
        if update_data.get("shared_with") is not None:
            self._check_recipients(update_data["shared_with"])
        elif "shared_with" in update_data:
            update_data["shared_with"] = []

        for field_name, value in update_data.items():
            setattr(note, field_name, value)
        if "reminder" in update_data:
            note.reminder_notified = False
        self._touch(note)

        self._log_debug("Note updated", note_id=note_id, fields=sorted(update_data))
        return note

    def soft_delete(self, note_id: str) -> Note:
        """Move a note to the trash."""
        note = self.get_note(note_id)
        note.is_deleted = True
        self._touch(note)
        self._log_operation("Note moved to trash", note_id=note_id)
        return note

    def restore(self, note_id: str) -> Note:
        """Bring a note back from the trash."""
        note = self.get_note(note_id)
        note.is_deleted = False
        self._touch(note)
        self._log_operation("Note restored", note_id=note_id)
        return note

    def permanently_delete(self, note_id: str) -> Note:
        """
        Remove a note entirely and release the attachments only it referenced.

        Returns:
            The removed note
        """
        note = self.get_note(note_id)
        self._notes.remove(note)
        self._release_unreferenced(note.attachments)
        self._log_operation("Note permanently deleted", note_id=note_id)
        return note

    def empty_trash(self) -> list[str]:
        """Permanently delete every trashed note. Returns the removed ids."""
        trashed = [note for note in self._notes if note.is_deleted]
        if not trashed:
            return []
        self._notes = [note for note in self._notes if not note.is_deleted]
        self._release_unreferenced(
            attachment_id for note in trashed for attachment_id in note.attachments
        )
        removed = [note.id for note in trashed]
        self._log_operation("Trash emptied", count=len(removed))
        return removed

    def duplicate_note(self, note_id: str) -> Note:
        """Copy a note to the head of the collection. Sharing is not copied."""
        source = self.get_note(note_id)
        now = self._clock.now()
        copy = source.model_copy(
            deep=True,
            update={
                "id": generate_id("memo"),
                "title": f"{source.title} (copy)",
                "created_at": now,
                "updated_at": now,
                "shared_with": [],
                "share_link": None,
            },
        )
        self._notes.insert(0, copy)
        self._log_operation("Note duplicated", note_id=note_id, copy_id=copy.id)
        return copy

    def toggle_favorite(self, note_id: str) -> Note:
        note = self.get_note(note_id)
        return self.update_note(note_id, NotePatch(is_favorite=not note.is_favorite))

    def set_reminder(self, note_id: str, when: datetime | None) -> Note:
        """Set or clear (``when=None``) a reminder. Always re-arms notification."""
        return self.update_note(note_id, NotePatch(reminder=when))

    def mark_reminder_notified(self, note_id: str) -> Note:
        """
        Record that a reminder has been delivered.

        Delivery is not an edit, so ``updated_at`` is left alone and the note
        keeps its place in the list.
        """
        note = self.get_note(note_id)
        if note.reminder is None:
            raise ValidationError("Note has no reminder", details={"note_id": note_id})
        note.reminder_notified = True
        return note

    def add_tag_to_note(self, note_id: str, tag_id: str) -> Note:
        note = self.get_note(note_id)
        self.get_tag(tag_id)
        if tag_id in note.tags:
            return note
        return self.update_note(note_id, NotePatch(tags=[*note.tags, tag_id]))

    def remove_tag_from_note(self, note_id: str, tag_id: str) -> Note:
        note = self.get_note(note_id)
        if tag_id not in note.tags:
            raise NotFoundError(f"Tag {tag_id} is not on note {note_id}")
        remaining = [t for t in note.tags if t != tag_id]
        # Dangling ids are dropped here rather than failing the whole update.
        known = {tag.id for tag in self._tags}
        return self.update_note(note_id, NotePatch(tags=[t for t in remaining if t in known]))

    def lock_note(self, note_id: str, password: str) -> Note:
        """
        Lock a note behind a password.

        Raises:
            ValidationError: If the note is already locked or the password is unusable
        """
        note = self.get_note(note_id)
        if note.is_locked:
            raise ValidationError("Note is already locked", details={"note_id": note_id})
        self._validate_required({"password": password}, ["password"])
        if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise ValidationError(
                "password too long",
                details={"password": f"Maximum length is {_MAX_PASSWORD_BYTES} bytes"},
            )
        note.password = hash_password(password)
        note.is_locked = True
        self._touch(note)
        self._log_operation("Note locked", note_id=note_id)
        return note

    def unlock_note(self, note_id: str, password: str) -> Note:
        """
        Remove a note's lock.

        Raises:
            AuthenticationError: If the password does not match
        """
        note = self.get_note(note_id)
        if not note.is_locked:
            return note
        if not note.password or not verify_password(password, note.password):
            self._log_operation("Note unlock rejected", note_id=note_id)
            raise AuthenticationError("Wrong password")
        note.is_locked = False
        note.password = None
        self._touch(note)
        self._log_operation("Note unlocked", note_id=note_id)
        return note

    def share_note(
        self,
        note_id: str,
        mode: ShareMode | str,
        recipient: str | None = None,
        link_base: str = "",
    ) -> Note:
        """
        Change how a note is shared.

        Args:
            note_id: Note to share
            mode: private (clears sharing), link (mints a share link) or
                email (shares with ``recipient``)
            recipient: Email address, required for email mode
            link_base: Base URL for generated links

        Raises:
            ValidationError: If email mode is used without a valid address
        """
        note = self.get_note(note_id)
        mode = ShareMode(mode)

        if mode == ShareMode.PRIVATE:
            note.shared_with = []
            note.share_link = None
        elif mode == ShareMode.LINK:
            note.share_link = f"{link_base.rstrip('/')}/share/{generate_id('share')}"
        else:
            email = (recipient or "").strip()
            self._check_recipients([email])
            note.shared_with = [email]

        self._touch(note)
        self._log_operation("Note sharing changed", note_id=note_id, mode=mode.value)
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
        """Register attachment metadata and append it to a note."""
        note = self.get_note(note_id)
        self._validate_required({"filename": filename, "url": url}, ["filename", "url"])
        if size < 0:
            raise ValidationError("size must not be negative", details={"size": size})

        attachment = Attachment(
            id=generate_id("attach"),
            filename=filename,
            type=mime_type or "application/octet-stream",
            size=size,
            uploaded_at=self._clock.now(),
            url=url,
        )
        self._attachments[attachment.id] = attachment
        note.attachments = [*note.attachments, attachment.id]
        self._touch(note)
        self._log_operation(
            "Attachment added",
            note_id=note_id,
            attachment_id=attachment.id,
            size=size,
        )
        return attachment

    def remove_attachment(self, note_id: str, attachment_id: str) -> Attachment | None:
        """
        Detach an attachment from a note, releasing it if nothing else uses it.

        Raises:
            NotFoundError: If the note does not reference the attachment
        """
        note = self.get_note(note_id)
        if attachment_id not in note.attachments:
            raise NotFoundError(f"Attachment {attachment_id} is not on note {note_id}")
        attachment = self._attachments.get(attachment_id)
        note.attachments = [a for a in note.attachments if a != attachment_id]
        self._touch(note)
        self._release_unreferenced([attachment_id])
        self._log_operation("Attachment removed", note_id=note_id, attachment_id=attachment_id)
        return attachment

    # =========================================================================
    # Tags
    # =========================================================================

    def create_tag(self, name: str) -> Tag:
        """
        Create a tag with the next palette color.

        Raises:
            ValidationError: If the name is blank
            DuplicateNameError: If a tag with the same name (ignoring case) exists
        """
        name = self._check_tag_name(name)
        tag = Tag(
            id=generate_id("tag"),
            name=name,
            color=self._palette[len(self._tags) % len(self._palette)],
        )
        self._tags.append(tag)
        self._log_operation("Tag created", tag_id=tag.id, name=name)
        return tag

    def rename_tag(self, tag_id: str, name: str) -> Tag:
        tag = self.get_tag(tag_id)
        name = self._check_tag_name(name, ignore_id=tag_id)
        tag.name = name
        self._log_operation("Tag renamed", tag_id=tag_id, name=name)
        return tag

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> Snapshot:
        """A deep copy of the current state, detached from the live objects."""
        return Snapshot(
            notes=[note.model_copy(deep=True) for note in self._notes],
            tags=[tag.model_copy(deep=True) for tag in self._tags],
            attachments=[a.model_copy(deep=True) for a in self._attachments.values()],
        )

    def load_snapshot(self, snapshot: Snapshot) -> None:
        """Replace all collections with copies of a snapshot's contents."""
        self._notes = [note.model_copy(deep=True) for note in snapshot.notes]
        self._tags = [tag.model_copy(deep=True) for tag in snapshot.tags]
        self._attachments = {a.id: a.model_copy(deep=True) for a in snapshot.attachments}
        for note in self._notes:
            if note.updated_at < note.created_at:
                note.updated_at = note.created_at
        self._log_debug(
            "Snapshot loaded",
            notes=len(self._notes),
            tags=len(self._tags),
            attachments=len(self._attachments),
        )

    def clear(self) -> None:
        self._notes = []
        self._tags = []
        self._attachments = {}

    # =========================================================================
    # Internals
    # =========================================================================

    def _touch(self, note: Note) -> None:
        now = self._clock.now()
        if now > note.updated_at:
            note.updated_at = now

    def _check_tags_exist(self, tag_ids: Iterable[str]) -> None:
        known = {tag.id for tag in self._tags}
        for tag_id in tag_ids:
            if tag_id not in known:
                raise NotFoundError(f"Tag not found: {tag_id}")

    def _check_recipients(self, recipients: Iterable[str]) -> None:
        invalid = [r for r in recipients if not is_valid_email(r)]
        if invalid:
            raise ValidationError(
                "Invalid email address",
                details={"recipients": invalid},
            )

    def _check_tag_name(self, name: str, ignore_id: str | None = None) -> str:
        name = (name or "").strip()
        self._validate_required({"name": name}, ["name"])
        self._validate_string_length(name, "name", max_length=64)
        for tag in self._tags:
            if tag.id != ignore_id and tag.matches(name):
                raise DuplicateNameError(f"Tag already exists: {tag.name}")
        return name

    def _release_unreferenced(self, attachment_ids: Iterable[str]) -> None:
        still_used = {a for note in self._notes for a in note.attachments}
        for attachment_id in dict.fromkeys(attachment_ids):
            if attachment_id in still_used:
                continue
            attachment = self._attachments.pop(attachment_id, None)
            if attachment is None:
                continue
            if self._release_attachment is not None:
                self._release_attachment(attachment)
            self._log_debug("Attachment released", attachment_id=attachment_id)
