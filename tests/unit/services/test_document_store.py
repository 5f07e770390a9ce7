"""
Unit Tests for the Document Store.

The store is exercised directly with a ManualClock; no collaborators are
mocked except the attachment release callback.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError as SchemaValidationError

from memos.core.exceptions import (
    AuthenticationError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)
from memos.schemas.note import Folder, NotePatch, ShareMode
from memos.schemas.snapshot import Snapshot
from memos.schemas.tag import TAG_PALETTE
from memos.services.document_store import DocumentStore


class TestCreateNote:
    def test_defaults(self, store, clock):
        note = store.create_note()
        assert note.id.startswith("memo-")
        assert note.title == ""
        assert note.created_at == note.updated_at == clock.now()
        assert not note.is_deleted

    def test_inserted_at_head(self, store):
        first = store.create_note()
        second = store.create_note()
        assert [n.id for n in store.notes] == [second.id, first.id]

    def test_ids_unique(self, store):
        ids = {store.create_note().id for _ in range(200)}
        assert len(ids) == 200


class TestUpdateNote:
    def test_applies_only_set_fields(self, store, clock):
        note = store.create_note(title="Old", content="keep")
        clock.advance(5)
        updated = store.update_note(note.id, NotePatch(title="New"))

        assert updated.title == "New"
        assert updated.content == "keep"
        assert updated.updated_at == clock.now()

    def test_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            store.update_note("memo-missing", NotePatch(title="x"))

    def test_empty_patch_is_noop(self, store, clock):
        note = store.create_note()
        clock.advance(5)
        store.update_note(note.id, NotePatch())
        assert note.updated_at == note.created_at

    def test_updated_at_never_moves_backwards(self, store, clock):
        note = store.create_note()
        clock.advance(10)
        store.update_note(note.id, NotePatch(title="a"))
        stamp = note.updated_at

        clock.set(clock.now() - timedelta(hours=1))
        store.update_note(note.id, NotePatch(title="b"))

        assert note.updated_at == stamp
        assert note.updated_at >= note.created_at

    def test_long_titles_accepted_on_create_and_update(self, store):
        title = "x" * 300
        note = store.create_note(title=title)

        store.update_note(note.id, NotePatch(title=title + "!"))

        assert note.title == title + "!"

    def test_none_title_becomes_empty(self, store):
        note = store.create_note(title="x")
        store.update_note(note.id, NotePatch(title=None))
        assert note.title == ""

    def test_reassigning_reminder_resets_notified(self, store):
        note = store.create_note()
        store.set_reminder(note.id, datetime(2024, 1, 1, 8))
        store.mark_reminder_notified(note.id)

        store.update_note(note.id, NotePatch(reminder=datetime(2024, 1, 2, 8)))

        assert note.reminder_notified is False

    def test_rejects_unknown_tag(self, store):
        note = store.create_note()
        with pytest.raises(NotFoundError, match="Tag not found"):
            store.update_note(note.id, NotePatch(tags=["tag-missing"]))
        assert note.tags == []

    def test_tags_are_deduplicated(self, store):
        tag = store.create_tag("Work")
        note = store.create_note()
        store.update_note(note.id, NotePatch(tags=[tag.id, tag.id]))
        assert note.tags == [tag.id]

    def test_rejects_invalid_recipient(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError):
            store.update_note(note.id, NotePatch(shared_with=["not-an-email"]))

    def test_locked_note_content_is_read_only(self, store):
        note = store.create_note(title="secret")
        store.lock_note(note.id, "pw")
        with pytest.raises(ValidationError, match="locked"):
            store.update_note(note.id, NotePatch(content="changed"))

    def test_locked_note_can_still_be_favorited(self, store):
        note = store.create_note()
        store.lock_note(note.id, "pw")
        store.toggle_favorite(note.id)
        assert note.is_favorite

    def test_patch_rejects_store_owned_fields(self):
        with pytest.raises(SchemaValidationError):
            NotePatch(updated_at=datetime(2024, 1, 1))


class TestTrash:
    def test_soft_delete_and_restore(self, store):
        note = store.create_note()
        store.soft_delete(note.id)
        assert store.list_filtered(Folder.TRASH) == [note]
        store.restore(note.id)
        assert store.list_filtered(Folder.TRASH) == []

    def test_deleted_notes_only_in_trash(self, store):
        tag = store.create_tag("Work")
        note = store.create_note(title="gone")
        store.toggle_favorite(note.id)
        store.set_reminder(note.id, datetime(2024, 2, 1))
        store.add_tag_to_note(note.id, tag.id)
        store.soft_delete(note.id)

        for folder in (Folder.ALL, Folder.FAVORITES, Folder.REMINDERS):
            assert store.list_filtered(folder, "") == []
            assert store.list_filtered(folder, "gone") == []
        assert store.list_filtered(Folder.TRASH, "") == [note]

    def test_permanent_delete_releases_attachments(self, clock):
        release = MagicMock()
        store = DocumentStore(clock=clock, release_attachment=release)
        note = store.create_note()
        attachment = store.add_attachment(note.id, "a.png", "image/png", 10, "blob:a")

        removed = store.permanently_delete(note.id)

        assert removed.id == note.id
        assert store.notes == ()
        assert store.attachments == ()
        release.assert_called_once_with(attachment)

    def test_shared_attachment_kept_until_last_reference(self, clock):
        release = MagicMock()
        store = DocumentStore(clock=clock, release_attachment=release)
        note = store.create_note(title="orig")
        store.add_attachment(note.id, "a.png", "image/png", 10, "blob:a")
        copy = store.duplicate_note(note.id)

        store.permanently_delete(note.id)
        release.assert_not_called()
        assert len(store.attachments) == 1

        store.permanently_delete(copy.id)
        release.assert_called_once()

    def test_empty_trash(self, store):
        keep = store.create_note(title="keep")
        gone = [store.create_note(title=f"gone {i}") for i in range(3)]
        for note in gone:
            store.soft_delete(note.id)

        removed = store.empty_trash()

        assert sorted(removed) == sorted(n.id for n in gone)
        assert store.notes == (keep,)
        assert store.empty_trash() == []


class TestListFiltered:
    def test_search_title_case_insensitive(self, store):
        note = store.create_note()
        store.update_note(note.id, NotePatch(title="Groceries"))
        store.create_note(title="Other")

        assert store.list_filtered("all", "groceries") == [note]

    def test_search_content_and_tag_names(self, store):
        tag = store.create_tag("Errands")
        by_content = store.create_note(content="buy MILK")
        by_tag = store.create_note()
        store.add_tag_to_note(by_tag.id, tag.id)

        assert store.list_filtered(Folder.ALL, "milk") == [by_content]
        assert store.list_filtered(Folder.ALL, "errand") == [by_tag]

    def test_blank_query_matches_everything(self, store):
        store.create_note()
        store.create_note()
        assert len(store.list_filtered(Folder.ALL, "   ")) == 2

    def test_sorted_by_updated_at_desc(self, store, clock):
        a = store.create_note(title="a")
        clock.advance(1)
        b = store.create_note(title="b")
        clock.advance(1)
        store.update_note(a.id, NotePatch(content="edited"))

        assert store.list_filtered(Folder.ALL) == [a, b]

    def test_ties_keep_collection_order(self, store):
        older = store.create_note(title="older")
        newer = store.create_note(title="newer")
        assert store.list_filtered(Folder.ALL) == [newer, older]

    def test_favorites_and_reminders(self, store):
        fav = store.create_note()
        store.toggle_favorite(fav.id)
        reminded = store.create_note()
        store.set_reminder(reminded.id, datetime(2024, 3, 1))

        assert store.list_filtered(Folder.FAVORITES) == [fav]
        assert store.list_filtered(Folder.REMINDERS) == [reminded]

    def test_unknown_folder(self, store):
        with pytest.raises(ValueError):
            store.list_filtered("archive")

    def test_counts(self, store):
        fav = store.create_note()
        store.toggle_favorite(fav.id)
        gone = store.create_note()
        store.soft_delete(gone.id)

        counts = store.counts()
        assert (counts.all, counts.favorites, counts.reminders, counts.trash) == (1, 1, 0, 1)


class TestTags:
    def test_duplicate_name_case_insensitive(self, store):
        store.create_tag("Work")
        with pytest.raises(DuplicateNameError):
            store.create_tag("work")
        assert store.create_tag("work2").name == "work2"

    def test_blank_name(self, store):
        with pytest.raises(ValidationError):
            store.create_tag("   ")

    def test_palette_cycles(self, store):
        tags = [store.create_tag(f"t{i}") for i in range(len(TAG_PALETTE) + 1)]
        assert tags[0].color == TAG_PALETTE[0]
        assert tags[1].color == TAG_PALETTE[1]
        assert tags[-1].color == TAG_PALETTE[0]

    def test_rename_keeps_uniqueness(self, store):
        work = store.create_tag("Work")
        store.create_tag("Home")
        with pytest.raises(DuplicateNameError):
            store.rename_tag(work.id, "HOME")
        assert store.rename_tag(work.id, "WORK").name == "WORK"

    def test_add_tag_idempotent(self, store, clock):
        tag = store.create_tag("Work")
        note = store.create_note()
        store.add_tag_to_note(note.id, tag.id)
        clock.advance(5)
        store.add_tag_to_note(note.id, tag.id)
        assert note.tags == [tag.id]
        assert note.updated_at == note.created_at

    def test_remove_tag(self, store):
        tag = store.create_tag("Work")
        note = store.create_note()
        store.add_tag_to_note(note.id, tag.id)
        store.remove_tag_from_note(note.id, tag.id)
        assert note.tags == []
        with pytest.raises(NotFoundError):
            store.remove_tag_from_note(note.id, tag.id)

    def test_dangling_tag_ids_filtered_on_read(self, store, clock):
        snapshot = Snapshot.model_validate({
            "notes": [{
                "id": "memo-1",
                "tags": ["tag-gone"],
                "createdAt": "2024-01-01T09:00:00",
                "updatedAt": "2024-01-01T09:00:00",
            }],
        })
        store.load_snapshot(snapshot)
        note = store.get_note("memo-1")

        assert store.resolve_tags(note) == []
        assert store.tag_count("tag-gone") == 1


class TestReminders:
    def test_set_and_clear(self, store):
        note = store.create_note()
        store.set_reminder(note.id, datetime(2024, 1, 2))
        assert note.reminder == datetime(2024, 1, 2)
        store.set_reminder(note.id, None)
        assert note.reminder is None

    def test_aware_reminder_stored_as_naive_utc(self, store):
        note = store.create_note()
        store.set_reminder(note.id, datetime(2024, 1, 2, 10, tzinfo=timezone(timedelta(hours=1))))
        assert note.reminder == datetime(2024, 1, 2, 9)

    def test_mark_notified_does_not_touch_updated_at(self, store, clock):
        note = store.create_note()
        store.set_reminder(note.id, datetime(2024, 1, 1, 8))
        stamp = note.updated_at
        clock.advance(60)

        store.mark_reminder_notified(note.id)

        assert note.reminder_notified is True
        assert note.updated_at == stamp

    def test_mark_notified_requires_reminder(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError):
            store.mark_reminder_notified(note.id)


class TestLocking:
    def test_password_stored_hashed(self, store):
        note = store.create_note()
        store.lock_note(note.id, "hunter2")
        assert note.is_locked
        assert note.password != "hunter2"

    def test_unlock_with_wrong_password(self, store):
        note = store.create_note()
        store.lock_note(note.id, "hunter2")
        with pytest.raises(AuthenticationError):
            store.unlock_note(note.id, "nope")
        assert note.is_locked

    def test_unlock_clears_password(self, store):
        note = store.create_note()
        store.lock_note(note.id, "hunter2")
        store.unlock_note(note.id, "hunter2")
        assert not note.is_locked
        assert note.password is None

    def test_lock_twice_rejected(self, store):
        note = store.create_note()
        store.lock_note(note.id, "a")
        with pytest.raises(ValidationError, match="already locked"):
            store.lock_note(note.id, "b")

    def test_blank_password_rejected(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError):
            store.lock_note(note.id, "  ")

    def test_overlong_password_rejected(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError, match="too long"):
            store.lock_note(note.id, "x" * 73)


class TestSharing:
    def test_link(self, store):
        note = store.create_note()
        store.share_note(note.id, ShareMode.LINK, link_base="https://memos.test/")
        assert note.share_link.startswith("https://memos.test/share/share-")

    def test_email(self, store):
        note = store.create_note()
        store.share_note(note.id, "email", recipient=" friend@example.com ")
        assert note.shared_with == ["friend@example.com"]

    def test_email_requires_valid_address(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError):
            store.share_note(note.id, ShareMode.EMAIL, recipient="friend")

    def test_private_clears_sharing(self, store):
        note = store.create_note()
        store.share_note(note.id, ShareMode.LINK)
        store.share_note(note.id, ShareMode.EMAIL, recipient="a@example.com")
        store.share_note(note.id, ShareMode.PRIVATE)
        assert note.share_link is None
        assert note.shared_with == []


class TestAttachments:
    def test_add(self, store, clock):
        note = store.create_note()
        clock.advance(3)
        attachment = store.add_attachment(note.id, "a.pdf", "", 42, "blob:a")

        assert attachment.type == "application/octet-stream"
        assert note.attachments == [attachment.id]
        assert store.note_attachments(note.id) == [attachment]
        assert note.updated_at == clock.now()

    def test_negative_size(self, store):
        note = store.create_note()
        with pytest.raises(ValidationError):
            store.add_attachment(note.id, "a.pdf", "application/pdf", -1, "blob:a")

    def test_remove(self, clock):
        release = MagicMock()
        store = DocumentStore(clock=clock, release_attachment=release)
        note = store.create_note()
        attachment = store.add_attachment(note.id, "a.pdf", "application/pdf", 1, "blob:a")

        assert store.remove_attachment(note.id, attachment.id) == attachment
        assert note.attachments == []
        release.assert_called_once_with(attachment)

    def test_remove_unknown(self, store):
        note = store.create_note()
        with pytest.raises(NotFoundError):
            store.remove_attachment(note.id, "attach-missing")
        with pytest.raises(NotFoundError):
            store.get_attachment("attach-missing")


class TestDuplicateAndExport:
    def test_duplicate(self, store):
        note = store.create_note(title="Plan", content="<p>steps</p>")
        store.share_note(note.id, ShareMode.LINK)
        copy = store.duplicate_note(note.id)

        assert copy.id != note.id
        assert copy.title == "Plan (copy)"
        assert copy.content == note.content
        assert copy.share_link is None
        assert store.notes[0] is copy

    def test_export_text(self, store):
        note = store.create_note(title="Groceries", content="<p>milk</p><p>eggs &amp; ham</p>")
        assert store.export_text(note.id) == "Groceries\n\nmilk\neggs & ham"


class TestSnapshots:
    def test_snapshot_is_detached(self, store):
        note = store.create_note(title="a")
        snapshot = store.snapshot()
        store.update_note(note.id, NotePatch(title="b"))
        assert snapshot.notes[0].title == "a"

    def test_load_replaces_state(self, store, clock):
        other = DocumentStore(clock=clock)
        other.create_tag("Work")
        other.create_note(title="from elsewhere")

        store.create_note(title="mine")
        store.load_snapshot(other.snapshot())

        assert [n.title for n in store.notes] == ["from elsewhere"]
        assert [t.name for t in store.tags] == ["Work"]

    def test_load_repairs_updated_before_created(self, store):
        snapshot = Snapshot.model_validate({
            "notes": [{
                "id": "memo-1",
                "createdAt": "2024-01-02T00:00:00",
                "updatedAt": "2024-01-01T00:00:00",
            }],
        })
        store.load_snapshot(snapshot)
        note = store.get_note("memo-1")
        assert note.updated_at == note.created_at

    def test_load_zulu_timestamps_then_edit(self, store, clock):
        snapshot = Snapshot.model_validate_json(json.dumps({
            "notes": [{
                "id": "memo-1",
                "title": "from an older save",
                "createdAt": "2023-12-31T08:00:00.000Z",
                "updatedAt": "2023-12-31T08:00:00.000Z",
                "reminder": "2023-12-31T09:00:00.000Z",
            }],
            "lastSaved": "2023-12-31T08:00:00.000Z",
        }))
        store.load_snapshot(snapshot)

        fresh = store.create_note(title="today")
        old = store.get_note("memo-1")

        assert old.created_at == datetime(2023, 12, 31, 8, 0)
        assert old.reminder.tzinfo is None
        assert store.list_filtered(Folder.ALL) == [fresh, old]

        clock.advance(1)
        store.update_note(old.id, NotePatch(content="edited"))
        assert old.updated_at == clock.now()
        assert store.list_filtered(Folder.ALL) == [old, fresh]

    def test_clear(self, store):
        store.create_note()
        store.create_tag("x")
        store.clear()
        assert store.notes == () and store.tags == () and store.attachments == ()
