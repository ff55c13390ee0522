"""Task service for CRUD operations."""

import logging
from datetime import date, datetime, time, timezone
from enum import Enum

from sqlalchemy.dialects.postgresql import insert as postgres_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, func, select

from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.base import DEFAULT_USER_ID, generate_id, utcnow
from daily_vibe.models.file import StoredFileResponse
from daily_vibe.models.task import (
    Priority,
    Task,
    TaskCreate,
    TaskResponse,
    TaskStatus,
    TaskUpdate,
)
from daily_vibe.services.attachments import get_attachments_for_tasks, remove_task_links

logger = logging.getLogger(__name__)

DUE_FIELDS = ("due_date", "due_time", "due_datetime")


def compute_due_datetime(due_date: date | None, due_time: time | None) -> datetime | None:
    """Combine a due date and time into a UTC timestamp, or None if either is missing."""
    if due_date is None or due_time is None:
        return None
    return datetime.combine(due_date, due_time.replace(tzinfo=None), tzinfo=timezone.utc)


def split_due_datetime(value: datetime) -> tuple[date, time]:
    """Split a due timestamp into its UTC date and minute-precision time."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date(), time(value.hour, value.minute)


def dialect_insert(session: Session):
    """Return the insert construct supporting ON CONFLICT for the bound dialect."""
    if session.get_bind().dialect.name == "postgresql":
        return postgres_insert
    return sqlite_insert


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


def create_task(session: Session, user_id: str, task_data: TaskCreate) -> Task:
    """Create a task, or overwrite the row with the same id.

    Creating with an id that already exists updates that row, so a retried
    create never produces a duplicate. ``created_at`` of the existing row
    is preserved.

    Raises:
        ValidationError: If the title is missing or blank
        NotFoundError: If the id belongs to another user's task
    """
    title = (task_data.title or "").strip()
    if not title:
        raise ValidationError("Task title is required")

    due_date, due_time = task_data.due_date, task_data.due_time
    if task_data.due_datetime is not None and due_date is None and due_time is None:
        due_date, due_time = split_due_datetime(task_data.due_datetime)

    now = utcnow()
    values = {
        "id": task_data.id or generate_id(),
        "user_id": user_id or DEFAULT_USER_ID,
        "title": title,
        "description": task_data.description,
        "priority": _enum_value(task_data.priority or Priority.MEDIUM),
        "category": task_data.category or "personal",
        "status": _enum_value(task_data.status or TaskStatus.TODO),
        "due_date": due_date,
        "due_time": due_time,
        "due_datetime": compute_due_datetime(due_date, due_time),
        "created_at": now,
        "updated_at": now,
    }

    insert = dialect_insert(session)
    statement = insert(Task).values(**values)
    statement = statement.on_conflict_do_update(
        index_elements=["id"],
        set_={
            key: statement.excluded[key]
            for key in values
            if key not in ("id", "user_id", "created_at")
        },
        where=(Task.user_id == statement.excluded.user_id),
    )
    session.connection().execute(statement)
    session.commit()

    task = session.get(Task, values["id"])
    if task.user_id != values["user_id"]:
        raise NotFoundError("Task not found")
    logger.info(
        "Task saved",
        extra={"task_id": task.id, "user_id": task.user_id, "status": task.status},
    )
    return task


def get_user_tasks(
    session: Session,
    user_id: str,
    status: str | None = None,
) -> list[Task]:
    """Get tasks for the user, newest first.

    An unknown status simply matches nothing.
    """
    query = select(Task).where(Task.user_id == user_id)
    if status is not None:
        query = query.where(Task.status == status)
    query = query.order_by(Task.created_at.desc())
    return list(session.exec(query).all())


def get_user_tasks_with_attachments(
    session: Session,
    user_id: str,
    status: str | None = None,
) -> list[TaskResponse]:
    """Get tasks for the user, each carrying its (possibly empty) attachment list."""
    tasks = get_user_tasks(session, user_id, status)
    attachments = get_attachments_for_tasks(session, [task.id for task in tasks])

    responses = []
    for task in tasks:
        response = TaskResponse.model_validate(task)
        response.attachments = [
            StoredFileResponse.model_validate(f) for f in attachments.get(task.id, [])
        ]
        responses.append(response)
    return responses


def get_task_by_id(session: Session, user_id: str, task_id: str) -> Task | None:
    """Get a specific task owned by the user."""
    return session.exec(
        select(Task).where(Task.id == task_id, Task.user_id == user_id)
    ).first()


def update_task(
    session: Session, user_id: str, task_id: str, task_data: TaskUpdate
) -> Task:
    """Update only the supplied fields of a task.

    Raises:
        NotFoundError: If the user has no task with this id
        ValidationError: If the title is set to a blank value
    """
    task = get_task_by_id(session, user_id, task_id)
    if task is None:
        raise NotFoundError("Task not found")

    update_data = task_data.model_dump(exclude_unset=True)

    if "title" in update_data:
        title = (update_data["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty")
        update_data["title"] = title

    # Non-nullable columns ignore explicit nulls
    for key in ("priority", "category", "status"):
        if key in update_data and update_data[key] is None:
            del update_data[key]

    due_changed = any(key in update_data for key in DUE_FIELDS)
    due_datetime = update_data.pop("due_datetime", None)
    if due_datetime is not None and "due_date" not in update_data and "due_time" not in update_data:
        update_data["due_date"], update_data["due_time"] = split_due_datetime(due_datetime)

    for key, value in update_data.items():
        setattr(task, key, _enum_value(value))

    if due_changed:
        task.due_datetime = compute_due_datetime(task.due_date, task.due_time)

    task.updated_at = max(utcnow(), task.updated_at)
    session.add(task)
    session.commit()
    session.refresh(task)

    logger.info(
        "Task updated",
        extra={"task_id": task.id, "user_id": user_id, "fields": sorted(update_data)},
    )
    return task


def delete_task(session: Session, user_id: str, task_id: str) -> None:
    """Delete a task and every attachment link that references it.

    Link rows go first; stored files are never deleted here.

    Raises:
        NotFoundError: If the user has no task with this id
    """
    task = get_task_by_id(session, user_id, task_id)
    if task is None:
        raise NotFoundError("Task not found")

    removed = remove_task_links(session, task_id)
    session.commit()

    session.delete(task)
    session.commit()

    logger.info(
        "Task deleted",
        extra={"task_id": task_id, "user_id": user_id, "links_removed": removed},
    )


def get_task_stats(session: Session, user_id: str) -> dict[str, int]:
    """Count the user's tasks per status. Standard statuses are always present."""
    rows = session.exec(
        select(Task.status, func.count())
        .where(Task.user_id == user_id)
        .group_by(Task.status)
    ).all()

    stats = {status.value: 0 for status in TaskStatus}
    for status, count in rows:
        stats[status] = count
    return stats


def get_tasks_in_range(
    session: Session, user_id: str, start: date, end: date
) -> list[Task]:
    """Get the user's tasks whose due date falls in ``[start, end]``.

    Raises:
        ValidationError: If start is after end
    """
    if start > end:
        raise ValidationError("Start date must not be after end date")

    return list(
        session.exec(
            select(Task)
            .where(Task.user_id == user_id)
            .where(Task.due_date >= start)
            .where(Task.due_date <= end)
            .order_by(Task.due_date.asc(), Task.due_time.asc())
        ).all()
    )
