"""Attachment service for the task <-> file link table.

Link rows have no database-level foreign keys. They are removed here when
either side is deleted; anything left behind by an interrupted delete is
picked up by :func:`sweep_orphan_attachments`.
"""

import logging
from collections import defaultdict

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from daily_vibe.errors import NotFoundError
from daily_vibe.models.file import StoredFile, TaskAttachment
from daily_vibe.models.task import Task

logger = logging.getLogger(__name__)


def _owns_task(session: Session, user_id: str, task_id: str) -> bool:
    return session.exec(
        select(Task.id).where(Task.id == task_id, Task.user_id == user_id)
    ).first() is not None


def add_attachment(
    session: Session, user_id: str, task_id: str, file_id: str
) -> TaskAttachment:
    """Link a file to a task. Linking an already linked pair is a no-op.

    Raises:
        NotFoundError: If the user owns no such task or file
    """
    if not _owns_task(session, user_id, task_id):
        raise NotFoundError("Task not found")

    stored = session.exec(
        select(StoredFile).where(StoredFile.id == file_id, StoredFile.user_id == user_id)
    ).first()
    if stored is None:
        raise NotFoundError("File not found")

    existing = session.get(TaskAttachment, (task_id, file_id))
    if existing is not None:
        return existing

    link = TaskAttachment(task_id=task_id, file_id=file_id)
    session.add(link)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race with an identical insert
        session.rollback()
        return session.get(TaskAttachment, (task_id, file_id))

    session.refresh(link)
    logger.info("Attachment added", extra={"task_id": task_id, "file_id": file_id})
    return link


def remove_attachment(session: Session, user_id: str, task_id: str, file_id: str) -> bool:
    """Unlink a file from one of the user's tasks.

    Returns:
        bool: True if a link was removed, False if there was none or the
        user owns no such task
    """
    if not _owns_task(session, user_id, task_id):
        return False

    link = session.get(TaskAttachment, (task_id, file_id))
    if link is None:
        return False

    session.delete(link)
    session.commit()
    logger.info("Attachment removed", extra={"task_id": task_id, "file_id": file_id})
    return True


def list_task_attachments(session: Session, user_id: str, task_id: str) -> list[StoredFile]:
    """Get the files linked to one of the user's tasks, oldest link first.

    A task the user does not own, or one already deleted, has none.
    """
    if not _owns_task(session, user_id, task_id):
        return []

    return list(
        session.exec(
            select(StoredFile)
            .join(TaskAttachment, TaskAttachment.file_id == StoredFile.id)
            .where(TaskAttachment.task_id == task_id)
            .order_by(TaskAttachment.created_at)
        ).all()
    )


def get_attachments_for_tasks(
    session: Session, task_ids: list[str]
) -> dict[str, list[StoredFile]]:
    """Get linked files for many tasks at once, keyed by task id."""
    if not task_ids:
        return {}

    rows = session.exec(
        select(TaskAttachment.task_id, StoredFile)
        .join(StoredFile, StoredFile.id == TaskAttachment.file_id)
        .where(TaskAttachment.task_id.in_(task_ids))
        .order_by(TaskAttachment.created_at)
    ).all()

    grouped: dict[str, list[StoredFile]] = defaultdict(list)
    for task_id, stored in rows:
        grouped[task_id].append(stored)
    return dict(grouped)


def remove_task_links(session: Session, task_id: str) -> int:
    """Delete every link referencing a task. The caller commits."""
    links = session.exec(
        select(TaskAttachment).where(TaskAttachment.task_id == task_id)
    ).all()
    for link in links:
        session.delete(link)
    return len(links)


def remove_file_links(session: Session, file_id: str) -> int:
    """Delete every link referencing a file. The caller commits."""
    links = session.exec(
        select(TaskAttachment).where(TaskAttachment.file_id == file_id)
    ).all()
    for link in links:
        session.delete(link)
    return len(links)


def sweep_orphan_attachments(session: Session) -> int:
    """Delete link rows whose task or file no longer exists.

    Returns:
        int: Number of link rows removed
    """
    task_ids = select(Task.id)
    file_ids = select(StoredFile.id)
    orphans = session.exec(
        select(TaskAttachment).where(
            TaskAttachment.task_id.not_in(task_ids) | TaskAttachment.file_id.not_in(file_ids)
        )
    ).all()

    for link in orphans:
        session.delete(link)
    session.commit()

    if orphans:
        logger.info("Orphan attachments swept", extra={"removed": len(orphans)})
    return len(orphans)
