"""Tests for stored files and task attachment links."""

import io
from pathlib import Path

import pytest
from sqlmodel import Session, select

from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.file import StoredFile, TaskAttachment
from daily_vibe.models.task import TaskCreate
from daily_vibe.services.attachments import (
    add_attachment,
    list_task_attachments,
    remove_attachment,
    sweep_orphan_attachments,
)
from daily_vibe.services.files import delete_file, get_file, resolve_stored_path, store_file
from daily_vibe.services.tasks import create_task


def _store(db_session: Session, settings, content: bytes = b"hello", name: str = "Note.TXT", user_id="default"):
    return store_file(
        db_session, user_id, name, "text/plain", io.BytesIO(content),
        settings.UPLOAD_DIR, settings.MAX_FILE_SIZE,
    )


class TestStoreFile:
    """Tests for store_file()."""

    def test_writes_bytes_and_row(self, db_session: Session, settings):
        stored = _store(db_session, settings)

        assert Path(stored.path).read_bytes() == b"hello"
        assert stored.size == 5
        assert stored.original_name == "Note.TXT"
        assert stored.stored_name.endswith(".txt")
        assert stored.url == f"/uploads/{stored.stored_name}"
        assert get_file(db_session, "default", stored.id) is not None

    def test_oversize_rejected_and_cleaned_up(self, db_session: Session, settings):
        """Files over MAX_FILE_SIZE leave neither a row nor bytes behind."""
        with pytest.raises(ValidationError):
            _store(db_session, settings, content=b"x" * (settings.MAX_FILE_SIZE + 1))

        assert db_session.exec(select(StoredFile)).all() == []
        assert list(Path(settings.UPLOAD_DIR).iterdir()) == []

    def test_file_scoped_to_owner(self, db_session: Session, settings):
        stored = _store(db_session, settings, user_id="alice")

        assert get_file(db_session, "bob", stored.id) is None


class TestResolveStoredPath:
    """Stored names never escape the upload directory."""

    def test_plain_name(self, tmp_path):
        assert resolve_stored_path(tmp_path, "abc.txt") == (tmp_path / "abc.txt").resolve()

    def test_traversal_rejected(self, tmp_path):
        assert resolve_stored_path(tmp_path, "../secret.txt") is None
        assert resolve_stored_path(tmp_path, "nested/file.txt") is None


class TestAttachments:
    """Tests for linking files to tasks."""

    def test_link_is_idempotent(self, db_session: Session, settings):
        task = create_task(db_session, "default", TaskCreate(title="Report"))
        stored = _store(db_session, settings)

        add_attachment(db_session, "default", task.id, stored.id)
        add_attachment(db_session, "default", task.id, stored.id)

        assert len(db_session.exec(select(TaskAttachment)).all()) == 1
        assert [f.id for f in list_task_attachments(db_session, "default", task.id)] == [stored.id]

    def test_link_requires_both_sides(self, db_session: Session, settings):
        task = create_task(db_session, "default", TaskCreate(title="Report"))
        stored = _store(db_session, settings)

        with pytest.raises(NotFoundError):
            add_attachment(db_session, "default", "missing-task", stored.id)
        with pytest.raises(NotFoundError):
            add_attachment(db_session, "default", task.id, "missing-file")

    def test_unlink(self, db_session: Session, settings):
        task = create_task(db_session, "default", TaskCreate(title="Report"))
        stored = _store(db_session, settings)
        add_attachment(db_session, "default", task.id, stored.id)

        assert remove_attachment(db_session, "default", task.id, stored.id) is True
        assert remove_attachment(db_session, "default", task.id, stored.id) is False
        assert list_task_attachments(db_session, "default", task.id) == []
        assert get_file(db_session, "default", stored.id) is not None

    def test_links_scoped_to_task_owner(self, db_session: Session, settings):
        """Another user can neither see nor remove the links of a task."""
        task = create_task(db_session, "alice", TaskCreate(title="Private"))
        stored = _store(db_session, settings, user_id="alice")
        add_attachment(db_session, "alice", task.id, stored.id)

        assert list_task_attachments(db_session, "mallory", task.id) == []
        assert remove_attachment(db_session, "mallory", task.id, stored.id) is False
        assert [f.id for f in list_task_attachments(db_session, "alice", task.id)] == [stored.id]

    def test_delete_file_removes_links_and_bytes(self, db_session: Session, settings):
        task = create_task(db_session, "default", TaskCreate(title="Report"))
        stored = _store(db_session, settings)
        add_attachment(db_session, "default", task.id, stored.id)
        path = Path(stored.path)

        delete_file(db_session, "default", stored.id)

        assert not path.exists()
        assert list_task_attachments(db_session, "default", task.id) == []
        with pytest.raises(NotFoundError):
            delete_file(db_session, "default", stored.id)

    def test_sweep_removes_only_orphans(self, db_session: Session, settings):
        task = create_task(db_session, "default", TaskCreate(title="Report"))
        stored = _store(db_session, settings)
        add_attachment(db_session, "default", task.id, stored.id)

        # Links left behind by interrupted deletes
        db_session.add(TaskAttachment(task_id="gone-task", file_id=stored.id))
        db_session.add(TaskAttachment(task_id=task.id, file_id="gone-file"))
        db_session.commit()

        assert sweep_orphan_attachments(db_session) == 2
        remaining = db_session.exec(select(TaskAttachment)).all()
        assert [(l.task_id, l.file_id) for l in remaining] == [(task.id, stored.id)]
